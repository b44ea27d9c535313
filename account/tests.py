from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from account.models import User
from integrations.models import ApiKey


class UserModelTests(TestCase):
    def test_create_user_hashes_password(self):
        user = User.objects.create_user(email="user@example.com", password="Pass123!")

        self.assertNotEqual(user.password, "Pass123!")
        self.assertTrue(user.check_password("Pass123!"))

    def test_create_user_requires_email(self):
        with self.assertRaisesMessage(ValueError, "Users must have an email"):
            User.objects.create_user(email="", password="Pass123!")

    @override_settings(CUSTOMER_CODE_PREFIX="TAS")
    def test_customer_gets_generated_user_code(self):
        first = User.objects.create_user(email="a@example.com", password="Pass123!")
        second = User.objects.create_user(email="b@example.com", password="Pass123!")

        self.assertEqual(first.user_code, "TAS1000")
        self.assertEqual(second.user_code, "TAS1001")

    def test_explicit_user_code_is_uppercased(self):
        user = User.objects.create_user(email="c@example.com", password="Pass123!", user_code=" tas999 ")
        self.assertEqual(user.user_code, "TAS999")

    def test_staff_have_no_user_code(self):
        staff = User.objects.create_user(
            email="staff@example.com", password="Pass123!", role=User.Role.WAREHOUSE, user_code="X1"
        )
        self.assertIsNone(staff.user_code)

    def test_get_customer_by_code_is_case_insensitive(self):
        customer = User.objects.create_user(email="d@example.com", password="Pass123!", user_code="TAS42")
        User.objects.create_user(email="e@example.com", password="Pass123!", role=User.Role.ADMIN)

        self.assertEqual(User.objects.get_customer_by_code("tas42"), customer)
        self.assertIsNone(User.objects.get_customer_by_code("TAS404"))
        self.assertIsNone(User.objects.get_customer_by_code(""))

    def test_superuser_defaults_to_admin_role(self):
        admin = User.objects.create_superuser(email="root@example.com", password="Pass123!")
        self.assertEqual(admin.role, User.Role.ADMIN)
        self.assertTrue(admin.is_admin_role)


class AccountApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            email="admin@example.com", password="Pass123!", role=User.Role.ADMIN
        )
        self.warehouse = User.objects.create_user(
            email="wh@example.com", password="Pass123!", role=User.Role.WAREHOUSE
        )

    def test_register_creates_customer_with_code(self):
        response = self.client.post(
            "/api/auth/register/",
            {"email": "new@example.com", "password": "Pass123!xyz", "first_name": "Ada"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn("password", response.data)
        user = User.objects.get(email="new@example.com")
        self.assertEqual(user.role, User.Role.CUSTOMER)
        self.assertTrue(user.user_code)
        self.assertEqual(response.data["user_code"], user.user_code)

    def test_login_returns_token_pair(self):
        response = self.client.post(
            "/api/auth/login/", {"email": "wh@example.com", "password": "Pass123!"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

    def test_me_requires_authentication(self):
        response = self.client.get("/api/auth/me/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_updates_profile_but_not_role(self):
        self.client.force_authenticate(self.warehouse)
        response = self.client.patch(
            "/api/auth/me/", {"first_name": "Sam", "role": "admin"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.warehouse.refresh_from_db()
        self.assertEqual(self.warehouse.first_name, "Sam")
        self.assertEqual(self.warehouse.role, User.Role.WAREHOUSE)

    def test_password_change_checks_current_password(self):
        self.client.force_authenticate(self.warehouse)
        bad = self.client.post(
            "/api/auth/me/password/",
            {"current_password": "wrong", "new_password": "N3wPassword!x"},
            format="json",
        )
        good = self.client.post(
            "/api/auth/me/password/",
            {"current_password": "Pass123!", "new_password": "N3wPassword!x"},
            format="json",
        )

        self.assertEqual(bad.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(good.status_code, status.HTTP_200_OK)
        self.warehouse.refresh_from_db()
        self.assertTrue(self.warehouse.check_password("N3wPassword!x"))

    def test_only_admin_can_manage_staff(self):
        self.client.force_authenticate(self.warehouse)
        denied = self.client.get("/api/auth/staff/")
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        created = self.client.post(
            "/api/auth/staff/",
            {"email": "wh2@example.com", "password": "Pass123!", "role": "warehouse", "branch": "Miami"},
            format="json",
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        staff = User.objects.get(email="wh2@example.com")
        self.assertTrue(staff.check_password("Pass123!"))
        self.assertIsNone(staff.user_code)

    def test_staff_role_cannot_be_customer(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            "/api/auth/staff/",
            {"email": "x@example.com", "password": "Pass123!", "role": "customer"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("role", response.data)

    @override_settings(WAREHOUSE_API_KEYS=["shared-warehouse-key"])
    def test_customer_directory_accepts_warehouse_key(self):
        User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1001")
        _, packages_only = ApiKey.generate(name="reader", permissions=[ApiKey.Permission.PACKAGES_READ])
        _, directory = ApiKey.generate(name="directory", permissions=[ApiKey.Permission.CUSTOMERS_READ])

        shared = self.client.get("/api/warehouse/customers/", HTTP_X_WAREHOUSE_KEY="shared-warehouse-key")
        scoped = self.client.get("/api/warehouse/customers/", {"q": "tas1001"}, HTTP_X_API_KEY=directory)
        denied = self.client.get("/api/warehouse/customers/", HTTP_X_API_KEY=packages_only)

        self.assertEqual(shared.status_code, status.HTTP_200_OK)
        self.assertEqual(scoped.status_code, status.HTTP_200_OK)
        self.assertEqual(denied.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_customer_directory_rejects_customers(self):
        customer = User.objects.create_user(email="c@example.com", password="Pass123!")
        self.client.force_authenticate(customer)

        response = self.client.get("/api/warehouse/customers/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
