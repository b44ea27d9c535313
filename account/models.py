import uuid
from django.conf import settings
from django.db import models
from django.contrib.auth.models import (
    AbstractBaseUser,
    PermissionsMixin,
    BaseUserManager,
)

class UserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Users must have an email")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.Role.ADMIN)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, password, **extra_fields)

    def customers(self):
        return self.filter(role=User.Role.CUSTOMER)

    def get_customer_by_code(self, user_code):
        code = (user_code or "").strip()
        if not code:
            return None
        return self.filter(role=User.Role.CUSTOMER, user_code__iexact=code).first()


class User(AbstractBaseUser, PermissionsMixin):
    class Role(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        WAREHOUSE = "warehouse", "Warehouse"
        ADMIN = "admin", "Admin"

    class AccountStatus(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, unique=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CUSTOMER, db_index=True)

    # Basic fields
    email = models.EmailField(unique=True)
    user_code = models.CharField(max_length=30, unique=True, null=True, blank=True)
    first_name = models.CharField(max_length=50, blank=True)
    last_name = models.CharField(max_length=50, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    password = models.CharField(max_length=128)

    # Warehouse staff and customers both belong to a branch
    branch = models.CharField(max_length=100, blank=True)

    # Address
    street = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)

    account_status = models.CharField(max_length=20, choices=AccountStatus.choices, default=AccountStatus.ACTIVE)
    email_verified = models.BooleanField(default=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Auth
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    objects = UserManager()

    USERNAME_FIELD = "email"

    class Meta:
        indexes = [
            models.Index(fields=["role", "created_at"], name="account_user_role_created_idx"),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name}".strip() or self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_customer(self):
        return self.role == self.Role.CUSTOMER

    @property
    def is_warehouse(self):
        return self.role == self.Role.WAREHOUSE

    @property
    def is_admin_role(self):
        return self.role == self.Role.ADMIN or self.is_superuser

    @classmethod
    def generate_user_code(cls) -> str:
        prefix = getattr(settings, "CUSTOMER_CODE_PREFIX", "TAS")
        number = cls.objects.filter(user_code__startswith=prefix).count() + 1000
        while True:
            candidate = f"{prefix}{number}"
            if not cls.objects.filter(user_code=candidate).exists():
                return candidate
            number += 1

    def save(self, *args, **kwargs):
        # only customers carry a code
        if self.role != self.Role.CUSTOMER:
            self.user_code = None
        elif self.user_code and self.user_code.strip():
            self.user_code = self.user_code.strip().upper()
        else:
            self.user_code = self.generate_user_code()
        super().save(*args, **kwargs)
