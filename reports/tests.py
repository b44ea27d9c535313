from datetime import timedelta

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from account.models import User
from packages.models import Package
from packages.services import PackageService, PreAlertService
from packages.status import PackageStatus
from .services import ReportError, ReportService, parse_period, percentage, safe_ratio


def add(tracking_number, status, **fields):
    return PackageService.apply_status_update(tracking_number, status, fields=fields, notify=False).package


class RatioTests(SimpleTestCase):
    def test_zero_denominator_counts_as_one(self):
        self.assertEqual(safe_ratio(5, 0), 5.0)
        self.assertEqual(safe_ratio(0, 0), 0.0)
        self.assertEqual(safe_ratio(None, None), 0.0)
        self.assertEqual(percentage(1, 4), 25.0)
        self.assertEqual(percentage(0, 0), 0.0)

    def test_period_parsing(self):
        start_at, end_at = parse_period("2024-01-01", "2024-01-31")
        self.assertEqual(start_at.hour, 0)
        self.assertEqual(end_at.hour, 23)
        self.assertEqual(parse_period("", None), (None, None))
        with self.assertRaises(ReportError):
            parse_period("yesterday", None)
        with self.assertRaises(ReportError):
            parse_period("2024-02-01", "2024-01-01")


class ReportServiceTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1001")
        add("R1", PackageStatus.DELIVERED, user_code="TAS1001", branch="Kingston", weight="2")
        add("R2", PackageStatus.IN_TRANSIT, user_code="TAS1001", branch="Kingston", weight="3")
        add("R3", PackageStatus.AT_WAREHOUSE, branch="MoBay")
        add("R4", PackageStatus.DELETED, user_code="TAS1001")

    def test_empty_tables_report_zero_percentages(self):
        Package.objects.all().delete()
        dashboard = ReportService.admin_dashboard()

        self.assertEqual(dashboard["total_packages"], 0)
        self.assertEqual(dashboard["delivery_rate"], 0.0)
        self.assertTrue(all(row["percentage"] == 0.0 for row in dashboard["by_status"]))

    def test_admin_dashboard(self):
        PreAlertService.register(self.customer, tracking_number="R5")
        dashboard = ReportService.admin_dashboard()

        self.assertEqual(dashboard["total_packages"], 4)
        self.assertEqual(dashboard["pending_pre_alerts"], 1)
        self.assertEqual(dashboard["unknown_packages"], 2)
        self.assertEqual(dashboard["delivery_rate"], 25.0)
        by_status = {row["status"]: row for row in dashboard["by_status"]}
        self.assertEqual(by_status["Delivered"]["count"], 1)
        self.assertEqual(by_status["Deleted"]["count"], 0)
        self.assertEqual(dashboard["stats"]["total_customers"], 1)

    def test_branch_report_shares(self):
        rows = ReportService.admin_report("branches")

        kingston = next(row for row in rows if row["branch"] == "Kingston")
        self.assertEqual(kingston["packages"], 2)
        self.assertEqual(kingston["share"], 66.67)
        self.assertEqual(kingston["delivery_rate"], 50.0)
        self.assertEqual(kingston["total_weight"], 5.0)

    def test_revenue_uses_latest_invoice_record(self):
        package = Package.objects.get(tracking_number="R1")
        package.invoice_records = [
            {"invoice_number": "A", "total_value": 10.0, "currency": "USD"},
            {"invoice_number": "B", "total_value": 25.5, "currency": "USD"},
        ]
        package.save(update_fields=["invoice_records"])

        rows = ReportService.admin_report("revenue")

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["invoices"], 1)
        self.assertEqual(rows[0]["total"], 25.5)
        self.assertEqual(rows[0]["currency"], "USD")

    def test_period_filter(self):
        Package.objects.filter(tracking_number="R3").update(created_at=timezone.now() - timedelta(days=40))
        start_at, _ = parse_period((timezone.now() - timedelta(days=1)).date().isoformat(), None)

        rows = ReportService.admin_report("packages", start_at=start_at)
        self.assertEqual(sorted(row["tracking_number"] for row in rows), ["R1", "R2"])

    def test_warehouse_customer_report(self):
        report = ReportService.warehouse_report("customer")

        self.assertEqual(report["data"][0]["user_code"], "TAS1001")
        self.assertEqual(report["data"][0]["total_packages"], 3)
        with self.assertRaises(ReportError):
            ReportService.warehouse_report("weekly")


class ReportApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="a@example.com", password="Pass123!", role=User.Role.ADMIN)
        self.warehouse = User.objects.create_user(email="w@example.com", password="Pass123!", role=User.Role.WAREHOUSE)
        add("P1", PackageStatus.AT_WAREHOUSE, branch="Kingston", weight="1.5")

    def test_admin_endpoints(self):
        self.client.force_authenticate(self.admin)

        stats = self.client.get("/api/admin/dashboard/stats/")
        self.assertEqual(stats.status_code, 200)
        self.assertEqual(stats.data["total_packages"], 1)

        report = self.client.get("/api/admin/reports/packages/", {"start": "2000-01-01"})
        self.assertEqual(report.status_code, 200)
        self.assertEqual(report.data["count"], 1)

        bad_type = self.client.get("/api/admin/reports/transactions/")
        self.assertEqual(bad_type.status_code, 400)

        bad_date = self.client.get("/api/admin/reports/packages/", {"start": "soon"})
        self.assertEqual(bad_date.status_code, 400)

    def test_csv_export(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get("/api/admin/reports/packages/", {"export": "csv"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv; charset=utf-8")
        lines = response.content.decode().splitlines()
        self.assertTrue(lines[0].startswith("tracking_number,user_code,status"))
        self.assertTrue(lines[1].startswith("P1,"))

    def test_warehouse_endpoints(self):
        self.client.force_authenticate(self.warehouse)

        analytics = self.client.get("/api/warehouse/analytics/")
        self.assertEqual(analytics.status_code, 200)
        self.assertEqual(analytics.data["today"]["packages"], 1)

        summary = self.client.get("/api/warehouse/reports/", {"type": "summary"})
        self.assertEqual(summary.data["total_packages"], 1)
        self.assertEqual(summary.data["total_weight"], 1.5)

        self.assertEqual(self.client.get("/api/admin/dashboard/stats/").status_code, 403)

    def test_anonymous_is_rejected(self):
        self.assertEqual(self.client.get("/api/warehouse/analytics/").status_code, 401)
        self.assertEqual(self.client.get("/api/admin/reports/packages/").status_code, 401)
