from django.urls import path

from .views import AdminDashboardStatsView, AdminReportView, WarehouseAnalyticsView, WarehouseReportView

urlpatterns = [
    path("admin/dashboard/stats/", AdminDashboardStatsView.as_view(), name="admin-dashboard-stats"),
    path("admin/reports/<str:report_type>/", AdminReportView.as_view(), name="admin-report"),
    path("warehouse/analytics/", WarehouseAnalyticsView.as_view(), name="warehouse-analytics"),
    path("warehouse/reports/", WarehouseReportView.as_view(), name="warehouse-reports"),
]
