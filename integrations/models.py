import hashlib
import secrets
import uuid
from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone


class ApiKey(models.Model):
    class Permission(models.TextChoices):
        PACKAGES_READ = "packages:read", "Read packages"
        PACKAGES_WRITE = "packages:write", "Write packages"
        MANIFESTS_WRITE = "manifests:write", "Write manifests"
        CUSTOMERS_READ = "customers:read", "Read customers"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120)
    # sha256 of the plain key; the plain key is only returned once, on creation
    key = models.CharField(max_length=64, unique=True)
    key_prefix = models.CharField(max_length=16, db_index=True)
    permissions = models.JSONField(default=list, blank=True)
    active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="api_keys"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.key_prefix}...)"

    @staticmethod
    def hash_key(raw_key: str) -> str:
        return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()

    @classmethod
    def generate(cls, *, name, permissions=None, expires_at=None, created_by=None, environment="live"):
        raw_key = f"wh_{environment}_{secrets.token_hex(24)}"
        api_key = cls.objects.create(
            name=name,
            key=cls.hash_key(raw_key),
            key_prefix=raw_key[:12],
            permissions=list(permissions or []),
            expires_at=expires_at,
            created_by=created_by,
        )
        return api_key, raw_key

    @property
    def is_usable(self):
        return self.active and (self.expires_at is None or self.expires_at > timezone.now())

    def has_permissions(self, required):
        return all(perm in self.permissions for perm in required or ())

    def mark_used(self):
        ApiKey.objects.filter(pk=self.pk).update(last_used_at=timezone.now(), usage_count=F("usage_count") + 1)
