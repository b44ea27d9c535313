import csv

from django.http import HttpResponse
from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from account.permissions import IsAdminRole
from integrations.models import ApiKey
from integrations.permissions import IsWarehouseOrApiKey

from .services import ReportError, ReportService, parse_period


def csv_response(rows, filename):
    response = HttpResponse(content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f"attachment; filename={filename}"
    if rows:
        writer = csv.DictWriter(response, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    return response


class AdminDashboardStatsView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def get(self, request):
        return Response(ReportService.admin_dashboard())


class AdminReportView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def get(self, request, report_type):
        params = request.query_params
        try:
            start_at, end_at = parse_period(params.get("start"), params.get("end"))
            rows = ReportService.admin_report(report_type, start_at, end_at)
        except ReportError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        if (params.get("export") or "").lower() == "csv":
            return csv_response(rows, f"report_{report_type}.csv")
        return Response({"type": report_type, "count": len(rows), "rows": rows})


class WarehouseAnalyticsView(APIView):
    permission_classes = [IsWarehouseOrApiKey]
    required_key_permissions = (ApiKey.Permission.PACKAGES_READ,)

    def get(self, request):
        return Response(ReportService.warehouse_analytics())


class WarehouseReportView(APIView):
    permission_classes = [IsWarehouseOrApiKey]
    required_key_permissions = (ApiKey.Permission.PACKAGES_READ,)

    def get(self, request):
        params = request.query_params
        try:
            start_at, end_at = parse_period(params.get("start"), params.get("end"))
            report = ReportService.warehouse_report(params.get("type") or "summary", start_at, end_at)
        except ReportError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        return Response(report)
