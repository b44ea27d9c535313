import shutil
import tempfile
import uuid
from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db.models.query import QuerySet
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APITestCase

from account.models import User
from integrations.models import ApiKey
from .models import Manifest, Package, PreAlert
from .services import (
    CustomerNotFound,
    ManifestService,
    PackageAccessDenied,
    PackageError,
    PackageNotFound,
    PackageService,
    PreAlertService,
    history_entry,
)
from .status import (
    PackageStatus,
    UiStatus,
    external_status_label,
    external_to_internal,
    internal_to_ui,
    service_type_name,
    ui_to_internal,
)


def insert_during_lookup(tracking_number, status=PackageStatus.AT_WAREHOUSE):
    """Make the first package lookup miss while another writer inserts the same row."""
    real_get = QuerySet.get
    inserted = []

    def racing_get(queryset, *args, **kwargs):
        if queryset.model is Package and kwargs.get("tracking_number") == tracking_number and not inserted:
            inserted.append(
                Package.objects.create(
                    tracking_number=tracking_number,
                    status=status,
                    history=[history_entry(status, updated_by="carrier")],
                )
            )
            raise Package.DoesNotExist
        return real_get(queryset, *args, **kwargs)

    return patch.object(QuerySet, "get", racing_get)


class StatusMappingTests(SimpleTestCase):
    def test_internal_to_ui_always_lands_in_ui_vocabulary(self):
        for status in PackageStatus.values + ["garbage", None]:
            self.assertIn(internal_to_ui(status), UiStatus.values)

    def test_ui_round_trip_lands_in_internal_vocabulary(self):
        for status in PackageStatus.values:
            self.assertIn(ui_to_internal(internal_to_ui(status)), PackageStatus.values)

    def test_known_mappings(self):
        self.assertEqual(internal_to_ui("In Transit"), "in_transit")
        self.assertEqual(internal_to_ui("At Local Port"), "ready_for_pickup")
        self.assertEqual(internal_to_ui("Delivered"), "delivered")
        self.assertEqual(internal_to_ui("Unknown"), "pending")
        self.assertEqual(internal_to_ui("Deleted"), "pending")
        self.assertEqual(ui_to_internal("pending"), "At Warehouse")
        self.assertEqual(ui_to_internal("ready_for_pickup"), "At Local Port")

    def test_unrecognized_ui_value_falls_back_to_at_warehouse(self):
        self.assertEqual(ui_to_internal("lost_at_sea"), "At Warehouse")
        self.assertEqual(ui_to_internal(None), "At Warehouse")

    def test_external_codes(self):
        self.assertEqual(external_to_internal(0), "At Warehouse")
        self.assertEqual(external_to_internal(1), "In Transit")
        self.assertEqual(external_to_internal("2"), "In Transit")
        self.assertEqual(external_to_internal("AT LOCAL PORT"), "At Local Port")
        self.assertEqual(external_to_internal(4), "At Local Port")
        self.assertEqual(external_to_internal(9), "Unknown")
        self.assertEqual(external_to_internal(None, default=PackageStatus.AT_WAREHOUSE), "At Warehouse")
        self.assertEqual(external_to_internal(True), "Unknown")

    def test_external_labels_and_service_types(self):
        self.assertEqual(external_status_label(2), "IN TRANSIT TO LOCAL PORT")
        self.assertEqual(external_status_label("nope"), "AT WAREHOUSE")
        self.assertEqual(service_type_name("25a1d8e5-a478-4cc3-b1fd-a37d0d787302"), "AIR EXPRESS")
        self.assertEqual(service_type_name("something-else"), "UNSPECIFIED")
        self.assertEqual(service_type_name(None), "UNSPECIFIED")


@override_settings(NOTIFICATIONS_ASYNC=False)
class PackageServiceTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(
            email="cust@example.com", password="Pass123!", first_name="Ann", user_code="TAS1001"
        )

    def test_new_package_gets_one_history_entry(self):
        result = PackageService.apply_status_update("1Z100", PackageStatus.AT_WAREHOUSE, note="arrived", updated_by="wh")

        self.assertTrue(result.created)
        self.assertTrue(result.status_changed)
        self.assertIsNone(result.previous_status)
        self.assertEqual(len(result.package.history), 1)
        entry = result.package.history[0]
        self.assertEqual(entry["status"], "At Warehouse")
        self.assertEqual(entry["note"], "arrived")
        self.assertEqual(entry["updated_by"], "wh")
        self.assertIn("at", entry)

    def test_same_status_touches_updated_at_without_history(self):
        first = PackageService.apply_status_update("1Z101", PackageStatus.AT_WAREHOUSE).package
        stamp = first.updated_at

        second = PackageService.apply_status_update("1Z101", PackageStatus.AT_WAREHOUSE)

        self.assertFalse(second.status_changed)
        self.assertEqual(len(second.package.history), 1)
        self.assertGreaterEqual(second.package.updated_at, stamp)
        self.assertEqual(Package.objects.count(), 1)

    def test_status_change_appends_exactly_one_entry(self):
        PackageService.apply_status_update("1Z102", PackageStatus.AT_WAREHOUSE)
        result = PackageService.apply_status_update("1Z102", PackageStatus.AT_LOCAL_PORT)

        self.assertEqual(result.previous_status, "At Warehouse")
        self.assertEqual(len(result.package.history), 2)
        self.assertEqual(result.package.history[-1]["status"], "At Local Port")

    def test_blank_fields_never_clear_existing_values(self):
        PackageService.apply_status_update(
            "1Z103", PackageStatus.AT_WAREHOUSE, fields={"weight": "2.5", "shipper": "Amazon"}
        )
        result = PackageService.apply_status_update(
            "1Z103",
            PackageStatus.IN_TRANSIT,
            location=" Kingston ",
            fields={"weight": None, "shipper": "  ", "description": "Shoes"},
        )

        package = Package.objects.get(pk=result.package.pk)
        self.assertEqual(package.weight, Decimal("2.50"))
        self.assertEqual(package.shipper, "Amazon")
        self.assertEqual(package.description, "Shoes")
        self.assertEqual(package.branch, "Kingston")

    def test_user_code_links_customer(self):
        result = PackageService.apply_status_update(
            "1Z104", PackageStatus.AT_WAREHOUSE, fields={"user_code": "tas1001"}
        )
        self.assertEqual(result.package.user_code, "TAS1001")
        self.assertEqual(result.package.customer, self.customer)

    def test_invalid_status_is_rejected_before_write(self):
        with self.assertRaises(PackageError):
            PackageService.apply_status_update("1Z105", "Lost")
        with self.assertRaises(PackageError):
            PackageService.apply_status_update("  ", PackageStatus.AT_WAREHOUSE)
        self.assertFalse(Package.objects.exists())

    def test_strict_rejects_bad_numbers_but_loose_skips_them(self):
        with self.assertRaises(PackageError):
            PackageService.apply_status_update("1Z106", PackageStatus.AT_WAREHOUSE, fields={"weight": "heavy"})

        result = PackageService.apply_status_update(
            "1Z106", PackageStatus.AT_WAREHOUSE, fields={"weight": "heavy", "shipper": "DHL"}, strict=False
        )
        self.assertIsNone(result.package.weight)
        self.assertEqual(result.package.shipper, "DHL")

    def test_fractional_pieces_are_rejected_or_skipped(self):
        with self.assertRaisesMessage(PackageError, "Invalid whole number for pieces"):
            PackageService.apply_status_update("1Z120", PackageStatus.AT_WAREHOUSE, fields={"pieces": "2.5"})

        loose = PackageService.apply_status_update(
            "1Z120", PackageStatus.AT_WAREHOUSE, fields={"pieces": "2.5"}, strict=False
        )
        self.assertIsNone(loose.package.pieces)

        whole = PackageService.apply_status_update("1Z120", PackageStatus.AT_WAREHOUSE, fields={"pieces": "3.0"})
        self.assertEqual(whole.package.pieces, 3)

    def test_first_history_entry_uses_entry_date(self):
        PackageService.apply_status_update(
            "1Z121", PackageStatus.AT_WAREHOUSE, fields={"entry_date": "2024-05-01T10:00:00"}
        )
        result = PackageService.apply_status_update(
            "1Z121", PackageStatus.IN_TRANSIT, fields={"entry_date": "2024-05-02T10:00:00"}
        )

        history = result.package.history
        self.assertEqual(history[0]["at"], "2024-05-01T10:00:00+00:00")
        self.assertNotEqual(history[1]["at"], "2024-05-02T10:00:00+00:00")

    def test_concurrent_first_write_becomes_an_update(self):
        with insert_during_lookup("RACE1"):
            result = PackageService.apply_status_update("RACE1", PackageStatus.IN_TRANSIT, updated_by="wh")

        self.assertFalse(result.created)
        self.assertEqual(result.previous_status, "At Warehouse")
        self.assertTrue(result.status_changed)
        package = Package.objects.get(tracking_number="RACE1")
        self.assertEqual(package.status, "In Transit")
        self.assertEqual([entry["status"] for entry in package.history], ["At Warehouse", "In Transit"])

    def test_in_transit_emails_owner(self):
        PackageService.apply_status_update("1Z107", PackageStatus.AT_WAREHOUSE, fields={"user_code": "TAS1001"})
        self.assertEqual(len(mail.outbox), 0)

        PackageService.apply_status_update("1Z107", PackageStatus.IN_TRANSIT, note="Flight 12")

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["cust@example.com"])
        self.assertIn("Flight 12", mail.outbox[0].body)

    def test_notification_failure_does_not_undo_the_write(self):
        with patch(
            "packages.services.NotificationService.notify_status_update", side_effect=RuntimeError("smtp down")
        ):
            with self.assertLogs("packages.services", level="ERROR"):
                result = PackageService.apply_status_update(
                    "1Z108", PackageStatus.DELIVERED, fields={"user_code": "TAS1001"}
                )

        self.assertEqual(Package.objects.get(pk=result.package.pk).status, "Delivered")

    def test_add_package_sends_new_package_email_once(self):
        first = PackageService.add_package("1Z109", fields={"user_code": "TAS1001", "shipper": "eBay"})
        second = PackageService.add_package("1Z109", fields={"user_code": "TAS1001"})

        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertEqual(second.package.status, "At Warehouse")
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("New Package Received", mail.outbox[0].subject)

    def test_soft_delete_keeps_row_and_history(self):
        with self.assertRaises(PackageNotFound):
            PackageService.soft_delete("missing")

        PackageService.apply_status_update("1Z110", PackageStatus.AT_WAREHOUSE)
        result = PackageService.soft_delete("1Z110", updated_by="wh")

        self.assertEqual(result.package.status, "Deleted")
        self.assertEqual([h["status"] for h in result.package.history], ["At Warehouse", "Deleted"])

    def test_link_unknown_package_moves_it_to_warehouse(self):
        package = PackageService.apply_status_update("1Z111", PackageStatus.UNKNOWN).package

        with self.assertRaises(CustomerNotFound):
            PackageService.link_to_customer(package.id, "NOPE")

        result = PackageService.link_to_customer(package.id, "tas1001", updated_by="wh")
        self.assertEqual(result.package.user_code, "TAS1001")
        self.assertEqual(result.package.customer, self.customer)
        self.assertEqual(result.package.status, "At Warehouse")
        self.assertIn("TAS1001", result.package.history[-1]["note"])
        self.assertNotIn(result.package, PackageService.unknown_packages())

    def test_pre_alert_creates_unknown_placeholder(self):
        pre_alert = PreAlertService.register(self.customer, tracking_number=" 1Z112 ", carrier="UPS")

        package = Package.objects.get(tracking_number="1Z112")
        self.assertEqual(pre_alert.package, package)
        self.assertEqual(package.status, "Unknown")
        self.assertEqual(package.user_code, "TAS1001")
        self.assertEqual(len(package.history), 1)

    def test_pre_alert_never_moves_status_backwards(self):
        PackageService.apply_status_update("1Z113", PackageStatus.IN_TRANSIT)
        PreAlertService.register(self.customer, tracking_number="1Z113")

        package = Package.objects.get(tracking_number="1Z113")
        self.assertEqual(package.status, "In Transit")
        self.assertEqual(package.user_code, "TAS1001")

    def test_pre_alert_for_someone_elses_package_is_denied(self):
        User.objects.create_user(email="other@example.com", password="Pass123!", user_code="TAS2002")
        PackageService.apply_status_update("1Z114", PackageStatus.AT_WAREHOUSE, fields={"user_code": "TAS2002"})

        with self.assertRaises(PackageAccessDenied):
            PreAlertService.register(self.customer, tracking_number="1Z114")
        self.assertFalse(PreAlert.objects.exists())

    def test_manifest_upsert_links_and_applies_status(self):
        PackageService.apply_status_update("AWB1", PackageStatus.AT_WAREHOUSE)
        PackageService.apply_status_update("AWB2", PackageStatus.AT_WAREHOUSE, fields={"control_number": "C-9"})

        manifest, created, linked = ManifestService.upsert(
            "M-1", {"description": "Tuesday flight"}, package_awbs=["AWB1"], collection_codes=["C-9"]
        )
        results = ManifestService.apply_status(manifest, PackageStatus.IN_TRANSIT)

        self.assertTrue(created)
        self.assertEqual(linked, 2)
        self.assertEqual(len(results), 2)
        self.assertEqual(
            set(Package.objects.filter(manifest=manifest).values_list("status", flat=True)), {"In Transit"}
        )

        again, created_again, _ = ManifestService.upsert("M-1", {"description": ""}, package_awbs=["AWB1"])
        self.assertFalse(created_again)
        self.assertEqual(again.description, "Tuesday flight")
        self.assertEqual(again.package_awbs, ["AWB1"])


@override_settings(NOTIFICATIONS_ASYNC=False)
class StatusUpdateApiTests(APITestCase):
    url = "/api/warehouse/packages/update-status/"

    def setUp(self):
        self.warehouse = User.objects.create_user(
            email="wh@example.com", password="Pass123!", role=User.Role.WAREHOUSE
        )
        self.customer = User.objects.create_user(
            email="owner@example.com", password="Pass123!", user_code="TAS1001"
        )

    def test_unauthenticated_is_rejected_before_any_write(self):
        response = self.client.post(self.url, {"tracking_number": "1Z1", "status": "At Warehouse"}, format="json")

        self.assertEqual(response.status_code, 401)
        self.assertFalse(Package.objects.exists())

    def test_customer_role_is_forbidden(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(self.url, {"tracking_number": "1Z1", "status": "At Warehouse"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_tas999_lifecycle(self):
        self.client.force_authenticate(self.warehouse)

        created = self.client.post(
            self.url, {"tracking_number": "TAS999", "status": "At Warehouse", "user_code": "TAS1001"}, format="json"
        )
        self.assertEqual(created.status_code, 200, created.data)
        package = Package.objects.get(tracking_number="TAS999")
        self.assertEqual([h["status"] for h in package.history], ["At Warehouse"])

        moved = self.client.post(self.url, {"tracking_number": "TAS999", "status": "In Transit"}, format="json")
        self.assertEqual(moved.status_code, 200, moved.data)
        self.assertEqual(moved.data["new_status"], "in_transit")
        self.assertEqual(moved.data["history_length"], 2)
        package.refresh_from_db()
        self.assertEqual(package.history[1]["status"], "In Transit")
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["owner@example.com"])

        repeated = self.client.post(self.url, {"tracking_number": "TAS999", "status": "In Transit"}, format="json")
        self.assertEqual(repeated.status_code, 200)
        package.refresh_from_db()
        self.assertEqual(len(package.history), 2)

    def test_ui_status_wins_over_internal_status(self):
        self.client.force_authenticate(self.warehouse)
        response = self.client.post(
            self.url,
            {"tracking_number": "1Z2", "status": "Delivered", "status_ui": "ready_for_pickup", "location": "MoBay"},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["status"], "At Local Port")
        self.assertEqual(response.data["new_status"], "ready_for_pickup")
        self.assertEqual(response.data["location"], "MoBay")
        self.assertEqual(response.data["updated_by"], "wh@example.com")

    def test_external_status_code(self):
        self.client.force_authenticate(self.warehouse)
        response = self.client.post(self.url, {"tracking_number": "1Z3", "external_status": 1}, format="json")

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["status"], "In Transit")

    def test_unknown_status_values_are_rejected(self):
        self.client.force_authenticate(self.warehouse)
        for payload in (
            {"tracking_number": "1Z4", "status": "Lost"},
            {"tracking_number": "1Z4", "status_ui": "lost"},
            {"tracking_number": "1Z4", "external_status": 9},
            {"tracking_number": "1Z4"},
        ):
            response = self.client.post(self.url, payload, format="json")
            self.assertEqual(response.status_code, 400, payload)
        self.assertFalse(Package.objects.exists())

    @override_settings(WAREHOUSE_API_KEYS=["shared-warehouse-key"])
    def test_shared_api_key_header(self):
        response = self.client.post(
            self.url,
            {"tracking_number": "1Z5", "status": "At Warehouse"},
            format="json",
            HTTP_X_WAREHOUSE_KEY="shared-warehouse-key",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertTrue(response.data["updated_by"].startswith("api-key:"))

    def test_database_key_needs_write_permission(self):
        _, read_only = ApiKey.generate(name="reader", permissions=[ApiKey.Permission.PACKAGES_READ])
        api_key, writer = ApiKey.generate(name="writer", permissions=[ApiKey.Permission.PACKAGES_WRITE])
        payload = {"tracking_number": "1Z6", "status": "At Warehouse"}

        denied = self.client.post(self.url, payload, format="json", HTTP_X_API_KEY=read_only)
        allowed = self.client.post(self.url, payload, format="json", HTTP_X_API_KEY=writer)

        self.assertEqual(denied.status_code, 401)
        self.assertEqual(allowed.status_code, 200)
        api_key.refresh_from_db()
        self.assertEqual(api_key.usage_count, 1)

    def test_concurrent_first_write_returns_ok(self):
        self.client.force_authenticate(self.warehouse)
        with insert_during_lookup("RACE2"):
            response = self.client.post(
                self.url, {"tracking_number": "RACE2", "status": "In Transit"}, format="json"
            )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(Package.objects.filter(tracking_number="RACE2").count(), 1)
        self.assertEqual(len(Package.objects.get(tracking_number="RACE2").history), 2)


@override_settings(NOTIFICATIONS_ASYNC=False)
class WarehouseApiTests(APITestCase):
    def setUp(self):
        self.warehouse = User.objects.create_user(
            email="wh@example.com", password="Pass123!", role=User.Role.WAREHOUSE
        )
        self.customer = User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1001")
        self.client.force_authenticate(self.warehouse)

    def test_bulk_upload_reports_per_item(self):
        response = self.client.post(
            "/api/warehouse/packages/bulk-upload/",
            {
                "packages": [
                    {"trackingNumber": "B1", "userCode": "TAS1001", "weight": 3, "warehouse": "Miami"},
                    {"trackingNumber": "B2", "userCode": "TAS404"},
                    {"trackingNumber": "B3"},
                ]
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["processed"], 3)
        self.assertEqual(response.data["succeeded"], 1)
        self.assertEqual(
            [r["ok"] for r in response.data["results"]], [True, False, False]
        )
        self.assertEqual(response.data["results"][1]["error"], "Customer not found")
        self.assertEqual(list(Package.objects.values_list("tracking_number", flat=True)), ["B1"])
        self.assertEqual(Package.objects.get().branch, "Miami")
        self.assertEqual(len(mail.outbox), 1)

    def test_manual_add_and_list(self):
        created = self.client.post(
            "/api/warehouse/packages/", {"tracking_number": "W1", "user_code": "TAS1001"}, format="json"
        )
        self.assertEqual(created.status_code, 201, created.data)
        self.assertEqual(created.data["status"], "At Warehouse")

        listing = self.client.get("/api/warehouse/packages/", {"status": "pending"})
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["ui_status"], "pending")

    def test_unknown_link_delete_exists_search(self):
        orphan = PackageService.apply_status_update("U1", PackageStatus.UNKNOWN).package

        unknown = self.client.get("/api/warehouse/packages/unknown/")
        self.assertEqual(unknown.data["count"], 1)

        linked = self.client.post(f"/api/warehouse/packages/{orphan.id}/link/", {"user_code": "TAS1001"}, format="json")
        self.assertEqual(linked.status_code, 200, linked.data)
        self.assertEqual(linked.data["user_code"], "TAS1001")

        missing = self.client.post(f"/api/warehouse/packages/{uuid.uuid4()}/link/", {"user_code": "TAS1001"}, format="json")
        self.assertEqual(missing.status_code, 404)

        exists = self.client.get("/api/warehouse/packages/exists/", {"tracking_number": "U1"})
        self.assertTrue(exists.data["exists"])

        search = self.client.get("/api/warehouse/packages/search/", {"q": "TAS1001"})
        self.assertEqual(len(search.data["results"]), 1)

        deleted = self.client.post("/api/warehouse/packages/delete/", {"tracking_number": "U1"}, format="json")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(Package.objects.get(tracking_number="U1").status, "Deleted")
        self.assertEqual(self.client.get("/api/warehouse/packages/").data["count"], 0)

    def test_manifest_update_endpoint(self):
        PackageService.apply_status_update("M1", PackageStatus.AT_WAREHOUSE)
        response = self.client.post(
            "/api/warehouse/manifests/update/",
            {"manifest_id": "MAN-7", "tracking_numbers": ["M1"], "status_ui": "in_transit"},
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["packages_updated"], 1)
        self.assertEqual(Package.objects.get(tracking_number="M1").status, "In Transit")
        self.assertEqual(Manifest.objects.get().manifest_id, "MAN-7")
        self.assertEqual(self.client.get("/api/warehouse/manifests/").data["count"], 1)


class CustomerPackageApiTests(APITestCase):
    def setUp(self):
        self.customer = User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1001")
        self.other = User.objects.create_user(email="o@example.com", password="Pass123!", user_code="TAS2002")
        self.mine = PackageService.apply_status_update(
            "C1", PackageStatus.IN_TRANSIT, fields={"user_code": "TAS1001"}, notify=False
        ).package
        PackageService.apply_status_update("C2", PackageStatus.DELETED, fields={"user_code": "TAS1001"}, notify=False)
        self.theirs = PackageService.apply_status_update(
            "C3", PackageStatus.AT_WAREHOUSE, fields={"user_code": "TAS2002"}, notify=False
        ).package
        self.client.force_authenticate(self.customer)

    def test_list_shows_only_own_live_packages(self):
        response = self.client.get("/api/customer/packages/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([p["tracking_number"] for p in response.data["results"]], ["C1"])
        self.assertEqual(response.data["results"][0]["ui_status"], "in_transit")

        filtered = self.client.get("/api/customer/packages/", {"status": "delivered"})
        self.assertEqual(filtered.data["count"], 0)

    def test_detail_includes_history_and_hides_foreign_packages(self):
        mine = self.client.get(f"/api/customer/packages/{self.mine.id}/")
        theirs = self.client.get(f"/api/customer/packages/{self.theirs.id}/")

        self.assertEqual(mine.status_code, 200)
        self.assertEqual(len(mine.data["history"]), 1)
        self.assertEqual(theirs.status_code, 404)

    def test_dashboard_counts_by_ui_status(self):
        response = self.client.get("/api/customer/dashboard/")

        self.assertEqual(response.data["total"], 1)
        self.assertEqual(response.data["by_status"]["in_transit"], 1)
        self.assertEqual(response.data["by_status"]["pending"], 0)

    def test_pre_alert_endpoint(self):
        response = self.client.post(
            "/api/customer/pre-alerts/", {"tracking_number": "NEW1", "carrier": "FedEx"}, format="json"
        )
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["status"], "submitted")

        denied = self.client.post("/api/customer/pre-alerts/", {"tracking_number": "C3"}, format="json")
        self.assertEqual(denied.status_code, 403)

        self.assertEqual(len(self.client.get("/api/customer/pre-alerts/").data), 1)

    def test_public_tracking(self):
        self.client.force_authenticate(None)
        found = self.client.get("/api/tracking/C1/")
        hidden = self.client.get("/api/tracking/C2/")

        self.assertEqual(found.status_code, 200)
        self.assertEqual(found.data["ui_status"], "in_transit")
        self.assertEqual(hidden.status_code, 404)


class InvoiceUploadTests(APITestCase):
    def setUp(self):
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, True)
        media = override_settings(MEDIA_ROOT=media_root)
        media.enable()
        self.addCleanup(media.disable)

        self.customer = User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1001")
        self.other = User.objects.create_user(email="o@example.com", password="Pass123!", user_code="TAS2002")
        self.package = PackageService.apply_status_update(
            "INV1", PackageStatus.AT_WAREHOUSE, fields={"user_code": "TAS1001"}, notify=False
        ).package
        self.url = f"/api/customer/packages/{self.package.id}/invoice/"
        self.client.force_authenticate(self.customer)

    def _pdf(self, name="invoice.pdf", body=b"%PDF-1.4 test invoice", content_type="application/pdf"):
        return SimpleUploadedFile(name, body, content_type=content_type)

    def test_upload_stores_documents_and_record(self):
        response = self.client.post(
            self.url,
            {
                "files": self._pdf(),
                "invoice_number": "INV-77",
                "invoice_date": "2024-03-01",
                "total_value": "49.999",
                "items": '[{"description": "Shoes", "quantity": 1, "unitValue": 50}]',
            },
            format="multipart",
        )

        self.assertEqual(response.status_code, 201, response.data)
        self.package.refresh_from_db()
        self.assertEqual(len(self.package.invoice_documents), 1)
        document = self.package.invoice_documents[0]
        self.assertEqual(document["mime_type"], "application/pdf")
        record = self.package.invoice_records[0]
        self.assertEqual(record["invoice_number"], "INV-77")
        self.assertEqual(record["total_value"], 50.0)
        self.assertEqual(record["currency"], "USD")
        self.assertEqual(record["status"], "submitted")
        self.assertEqual(record["document_url"], document["url"])
        self.assertEqual(record["items"][0]["unit_value"], 50.0)

    def test_upload_without_complete_metadata_stores_only_document(self):
        response = self.client.post(self.url, {"invoice": self._pdf()}, format="multipart")

        self.assertEqual(response.status_code, 201, response.data)
        self.package.refresh_from_db()
        self.assertEqual(len(self.package.invoice_documents), 1)
        self.assertEqual(self.package.invoice_records, [])

    def test_disallowed_type_is_415_and_nothing_is_written(self):
        response = self.client.post(
            self.url,
            {"files": [self._pdf(), self._pdf("notes.txt", b"hello", "text/plain")]},
            format="multipart",
        )

        self.assertEqual(response.status_code, 415)
        self.package.refresh_from_db()
        self.assertEqual(self.package.invoice_documents, [])

    @override_settings(MAX_INVOICE_BYTES=10, MAX_INVOICE_MB=0)
    def test_oversize_file_is_413(self):
        response = self.client.post(self.url, {"files": self._pdf(body=b"x" * 11)}, format="multipart")
        self.assertEqual(response.status_code, 413)

    def test_missing_file_is_400(self):
        response = self.client.post(self.url, {"invoice_number": "INV-1"}, format="multipart")
        self.assertEqual(response.status_code, 400)

    def test_foreign_and_unknown_packages(self):
        self.client.force_authenticate(self.other)
        foreign = self.client.post(self.url, {"files": self._pdf()}, format="multipart")
        self.assertEqual(foreign.status_code, 403)

        unknown = self.client.post(
            f"/api/customer/packages/{uuid.uuid4()}/invoice/", {"files": self._pdf()}, format="multipart"
        )
        self.assertEqual(unknown.status_code, 404)


class AdminPackageApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="a@example.com", password="Pass123!", role=User.Role.ADMIN)
        self.customer = User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1001")
        self.package = PackageService.apply_status_update(
            "A1", PackageStatus.AT_WAREHOUSE, fields={"user_code": "TAS1001"}, notify=False
        ).package
        self.package.invoice_records = [{"invoice_number": "I-1", "status": "submitted"}]
        self.package.save(update_fields=["invoice_records"])
        self.client.force_authenticate(self.admin)

    def test_invoice_review(self):
        url = f"/api/admin/packages/{self.package.id}/invoices/0/"
        response = self.client.post(url, {"status": "reviewed"}, format="json")

        self.assertEqual(response.status_code, 200, response.data)
        self.package.refresh_from_db()
        self.assertEqual(self.package.invoice_records[0]["status"], "reviewed")
        self.assertEqual(self.package.invoice_records[0]["reviewed_by"], "a@example.com")

        out_of_range = self.client.post(
            f"/api/admin/packages/{self.package.id}/invoices/3/", {"status": "reviewed"}, format="json"
        )
        self.assertEqual(out_of_range.status_code, 404)

    def test_pre_alert_decision(self):
        pre_alert = PreAlertService.register(self.customer, tracking_number="A2")
        response = self.client.post(
            f"/api/admin/pre-alerts/{pre_alert.id}/decision/", {"decision": "approved"}, format="json"
        )

        self.assertEqual(response.status_code, 200, response.data)
        pre_alert.refresh_from_db()
        self.assertEqual(pre_alert.status, "approved")
        self.assertEqual(pre_alert.decided_by, self.admin)

    def test_admin_list_and_warehouse_denied(self):
        self.assertEqual(self.client.get("/api/admin/packages/").data["count"], 1)

        warehouse = User.objects.create_user(email="w@example.com", password="Pass123!", role=User.Role.WAREHOUSE)
        self.client.force_authenticate(warehouse)
        self.assertEqual(self.client.get("/api/admin/packages/").status_code, 403)
