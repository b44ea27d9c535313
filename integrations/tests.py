from datetime import timedelta

from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from account.models import User
from packages.models import Manifest, Package
from packages.services import PackageService
from packages.status import PackageStatus
from .models import ApiKey
from .permissions import verify_key
from .services import ExternalIngestionService, ExternalManifestService, IngestionError


class ApiKeyTests(TestCase):
    def test_generate_stores_only_the_hash(self):
        api_key, raw = ApiKey.generate(name="carrier", permissions=[ApiKey.Permission.PACKAGES_WRITE])

        self.assertTrue(raw.startswith("wh_live_"))
        self.assertNotEqual(api_key.key, raw)
        self.assertEqual(api_key.key, ApiKey.hash_key(raw))
        self.assertEqual(api_key.key_prefix, raw[:12])

    def test_verify_checks_permissions_activity_and_expiry(self):
        api_key, raw = ApiKey.generate(name="carrier", permissions=[ApiKey.Permission.PACKAGES_WRITE])

        self.assertIsNotNone(verify_key(raw, [ApiKey.Permission.PACKAGES_WRITE]))
        self.assertIsNone(verify_key(raw, [ApiKey.Permission.CUSTOMERS_READ]))
        self.assertIsNone(verify_key("wh_live_not-a-real-key"))
        self.assertIsNone(verify_key(""))

        api_key.expires_at = timezone.now() - timedelta(minutes=1)
        api_key.save(update_fields=["expires_at"])
        self.assertIsNone(verify_key(raw))

        api_key.expires_at = None
        api_key.active = False
        api_key.save(update_fields=["expires_at", "active"])
        self.assertIsNone(verify_key(raw))

    @override_settings(WAREHOUSE_API_KEYS=["shared-secret"])
    def test_shared_keys_carry_every_permission(self):
        warehouse_key = verify_key("shared-secret", [ApiKey.Permission.CUSTOMERS_READ])
        self.assertEqual(warehouse_key.source, "env")
        self.assertEqual(warehouse_key.label, "api-key:shared-s")


@override_settings(NOTIFICATIONS_ASYNC=False)
class ExternalIngestionServiceTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1001")

    def test_unwrap(self):
        self.assertEqual(ExternalIngestionService.unwrap([{"a": 1}]), [{"a": 1}])
        self.assertEqual(ExternalIngestionService.unwrap({"APIToken": "x", "Packages": []}), [])
        with self.assertRaises(IngestionError):
            ExternalIngestionService.unwrap({"Packages": "nope"})

    def test_mixed_batch(self):
        summary = ExternalIngestionService(updated_by="api-key:test").ingest_packages(
            [
                {
                    "TrackingNumber": "EXT1",
                    "UserCode": "tas1001",
                    "Weight": "4.2",
                    "ServiceTypeID": "59cadcd4-7508-450b-85aa-9ec908d168fe",
                    "EntryDateTime": "2024-05-01T10:00:00",
                    "EntryDate": "not a date",
                },
                {"TrackingNumber": "EXT2", "UserCode": "TAS9999"},
            ]
        )

        self.assertEqual(summary["processed"], 2)
        self.assertEqual(summary["succeeded"], 1)
        self.assertEqual(summary["failed"], 1)
        self.assertEqual(summary["results"][0], {"trackingNumber": "EXT1", "ok": True})
        self.assertEqual(summary["results"][1]["error"], "Customer not found")

        package = Package.objects.get()
        self.assertEqual(package.tracking_number, "EXT1")
        self.assertEqual(package.user_code, "TAS1001")
        self.assertEqual(package.status, "At Warehouse")
        self.assertEqual(package.service_type_name, "AIR STANDARD")
        self.assertEqual(package.external_status_label, "AT WAREHOUSE")
        self.assertEqual(package.entry_date.year, 2024)
        self.assertEqual(package.history[0]["at"], "2024-05-01T10:00:00+00:00")
        self.assertEqual(package.history[0]["note"], "Received via external addpackage endpoint")
        self.assertEqual(package.history[0]["updated_by"], "api-key:test")

    def test_package_status_code_is_mapped(self):
        ExternalIngestionService().ingest_packages(
            [{"TrackingNumber": "EXT3", "UserCode": "TAS1001", "PackageStatus": 3}]
        )
        package = Package.objects.get(tracking_number="EXT3")
        self.assertEqual(package.status, "At Local Port")
        self.assertEqual(package.external_status_label, "AT LOCAL PORT")

    def test_re_ingesting_does_not_grow_history(self):
        service = ExternalIngestionService()
        record = {"TrackingNumber": "EXT4", "UserCode": "TAS1001", "Shipper": "Amazon"}
        service.ingest_packages([record])
        service.ingest_packages([dict(record, Shipper="")])

        package = Package.objects.get(tracking_number="EXT4")
        self.assertEqual(len(package.history), 1)
        self.assertEqual(package.shipper, "Amazon")

    def test_bad_records_are_reported_not_raised(self):
        summary = ExternalIngestionService().ingest_packages(["junk", {"TrackingNumber": "EXT5"}])

        self.assertEqual(summary["failed"], 2)
        self.assertEqual(summary["results"][1]["error"], "Missing TrackingNumber or UserCode")
        self.assertFalse(Package.objects.exists())


class ExternalManifestServiceTests(TestCase):
    def test_requires_manifest_id(self):
        with self.assertRaises(IngestionError):
            ExternalManifestService.update({"Manifest": {}})
        with self.assertRaises(IngestionError):
            ExternalManifestService.update([])

    def test_upsert_links_packages(self):
        PackageService.apply_status_update("AWB1", PackageStatus.AT_WAREHOUSE, notify=False)
        PackageService.apply_status_update(
            "AWB2", PackageStatus.AT_WAREHOUSE, fields={"control_number": "CC-1"}, notify=False
        )

        result = ExternalManifestService.update(
            {
                "APIToken": "secret",
                "Manifest": {
                    "ManifestID": "MAN-1",
                    "ManifestStatus": 2,
                    "Weight": "120.5",
                    "FlightDate": "2024-05-02",
                    "ItemCount": "bogus",
                },
                "PackageAWBs": ["AWB1", "", 7],
                "CollectionCodes": ["CC-1"],
            }
        )

        self.assertEqual(
            result,
            {
                "ok": True,
                "manifestId": "MAN-1",
                "created": True,
                "linkedByTracking": 1,
                "linkedByControl": 1,
                "packagesLinked": 2,
            },
        )
        manifest = Manifest.objects.get(manifest_id="MAN-1")
        self.assertEqual(manifest.status_code, 2)
        self.assertEqual(manifest.status_label, "IN TRANSIT TO LOCAL PORT")
        self.assertIsNone(manifest.item_count)
        self.assertNotIn("APIToken", manifest.raw_payload)
        self.assertEqual(manifest.packages.count(), 2)


@override_settings(NOTIFICATIONS_ASYNC=False)
class ExternalEndpointTests(APITestCase):
    add_url = "/api/warehouse/addpackage/subdir/"
    manifest_url = "/api/warehouse/updatemanifest/subdir/"
    pull_url = "/api/warehouse/pullcustomer/subdir/"

    def setUp(self):
        self.customer = User.objects.create_user(
            email="c@example.com", password="Pass123!", first_name="Ann", user_code="TAS1001", branch="Kingston"
        )
        _, self.writer = ApiKey.generate(
            name="carrier", permissions=[ApiKey.Permission.PACKAGES_WRITE, ApiKey.Permission.MANIFESTS_WRITE]
        )
        _, self.reader = ApiKey.generate(name="sync", permissions=[ApiKey.Permission.CUSTOMERS_READ])

    def test_add_package_requires_a_key(self):
        response = self.client.post(self.add_url, [{"TrackingNumber": "X1", "UserCode": "TAS1001"}], format="json")

        self.assertEqual(response.status_code, 401)
        self.assertFalse(Package.objects.exists())

    def test_add_package_with_header_key(self):
        response = self.client.post(
            self.add_url,
            [{"TrackingNumber": "X1", "UserCode": "TAS1001"}, {"TrackingNumber": "X2", "UserCode": "TAS0000"}],
            format="json",
            HTTP_X_API_KEY=self.writer,
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["succeeded"], 1)
        self.assertEqual(list(Package.objects.values_list("tracking_number", flat=True)), ["X1"])
        self.assertEqual(Package.objects.get().history[0]["updated_by"], f"api-key:{self.writer[:12]}")
        self.assertEqual(len(mail.outbox), 0)

    def test_add_package_with_body_token_envelope(self):
        response = self.client.post(
            self.add_url,
            {"APIToken": self.writer, "Packages": [{"TrackingNumber": "X3", "UserCode": "TAS1001"}]},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertTrue(Package.objects.filter(tracking_number="X3").exists())

    def test_add_package_rejects_malformed_body(self):
        response = self.client.post(
            self.add_url, {"APIToken": self.writer, "Packages": "X3"}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_key_without_permission_is_rejected(self):
        response = self.client.post(
            self.add_url, [{"TrackingNumber": "X4", "UserCode": "TAS1001"}], format="json", HTTP_X_API_KEY=self.reader
        )
        self.assertEqual(response.status_code, 401)

    def test_logged_in_staff_still_needs_a_key(self):
        staff = User.objects.create_user(email="w@example.com", password="Pass123!", role=User.Role.WAREHOUSE)
        self.client.force_authenticate(staff)

        response = self.client.post(self.add_url, [{"TrackingNumber": "X5", "UserCode": "TAS1001"}], format="json")
        self.assertEqual(response.status_code, 403)

    def test_update_manifest(self):
        PackageService.apply_status_update("AWB9", PackageStatus.AT_WAREHOUSE, notify=False)
        response = self.client.post(
            self.manifest_url,
            {"APIToken": self.writer, "Manifest": {"ManifestID": "M-9"}, "PackageAWBs": ["AWB9"]},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["packagesLinked"], 1)

        missing = self.client.post(self.manifest_url, {"APIToken": self.writer, "Manifest": {}}, format="json")
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.data["detail"], "Manifest.ManifestID is required")

    def test_pull_customers_with_query_key(self):
        User.objects.create_user(email="w@example.com", password="Pass123!", role=User.Role.WAREHOUSE)

        response = self.client.get(self.pull_url, {"id": self.reader})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["UserCode"], "TAS1001")
        self.assertEqual(response.data[0]["FirstName"], "Ann")
        self.assertEqual(response.data[0]["Branch"], "Kingston")

        denied = self.client.get(self.pull_url, {"id": self.writer})
        self.assertEqual(denied.status_code, 401)


class ApiKeyAdminTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="a@example.com", password="Pass123!", role=User.Role.ADMIN)
        self.client.force_authenticate(self.admin)

    def test_create_list_deactivate(self):
        created = self.client.post(
            "/api/admin/api-keys/",
            {"name": "carrier", "permissions": ["packages:write"], "environment": "test"},
            format="json",
        )
        self.assertEqual(created.status_code, 201, created.data)
        raw = created.data["key"]
        self.assertTrue(raw.startswith("wh_test_"))
        self.assertIsNotNone(verify_key(raw, ["packages:write"]))

        listing = self.client.get("/api/admin/api-keys/")
        self.assertEqual(len(listing.data), 1)
        self.assertNotIn("key", listing.data[0])

        deactivated = self.client.post(f"/api/admin/api-keys/{created.data['id']}/deactivate/")
        self.assertEqual(deactivated.status_code, 200)
        self.assertFalse(deactivated.data["active"])
        self.assertIsNone(verify_key(raw, ["packages:write"]))

    def test_create_requires_permissions(self):
        response = self.client.post("/api/admin/api-keys/", {"name": "empty", "permissions": []}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_non_admin_is_forbidden(self):
        customer = User.objects.create_user(email="c@example.com", password="Pass123!")
        self.client.force_authenticate(customer)
        self.assertEqual(self.client.get("/api/admin/api-keys/").status_code, 403)
