from django.urls import path

from account.views import CustomerDirectoryView

from .views import (
    AdminInvoiceReviewView,
    AdminPackageDetailView,
    AdminPackageView,
    AdminPreAlertDecisionView,
    AdminPreAlertListView,
    BulkUploadView,
    CustomerDashboardView,
    CustomerInvoiceUploadView,
    CustomerPackageDetailView,
    CustomerPackageListView,
    CustomerPreAlertView,
    DeletePackageView,
    LinkPackageView,
    ManifestListView,
    ManifestUpdateView,
    PackageExistsView,
    PackageSearchView,
    StatusUpdateView,
    TrackingView,
    UnknownPackageListView,
    WarehousePackageView,
)


urlpatterns = [
    # customer
    path("customer/packages/", CustomerPackageListView.as_view(), name="customer-packages"),
    path("customer/packages/<uuid:pk>/", CustomerPackageDetailView.as_view(), name="customer-package-detail"),
    path("customer/packages/<uuid:pk>/invoice/", CustomerInvoiceUploadView.as_view(), name="customer-package-invoice"),
    path("customer/pre-alerts/", CustomerPreAlertView.as_view(), name="customer-pre-alerts"),
    path("customer/dashboard/", CustomerDashboardView.as_view(), name="customer-dashboard"),
    # public
    path("tracking/<str:tracking_number>/", TrackingView.as_view(), name="tracking"),
    # warehouse
    path("warehouse/packages/", WarehousePackageView.as_view(), name="warehouse-packages"),
    path("warehouse/packages/update-status/", StatusUpdateView.as_view(), name="warehouse-update-status"),
    path("warehouse/packages/bulk-upload/", BulkUploadView.as_view(), name="warehouse-bulk-upload"),
    path("warehouse/packages/unknown/", UnknownPackageListView.as_view(), name="warehouse-unknown-packages"),
    path("warehouse/packages/delete/", DeletePackageView.as_view(), name="warehouse-delete-package"),
    path("warehouse/packages/search/", PackageSearchView.as_view(), name="warehouse-package-search"),
    path("warehouse/packages/exists/", PackageExistsView.as_view(), name="warehouse-package-exists"),
    path("warehouse/packages/<uuid:pk>/link/", LinkPackageView.as_view(), name="warehouse-link-package"),
    path("warehouse/manifests/", ManifestListView.as_view(), name="warehouse-manifests"),
    path("warehouse/manifests/update/", ManifestUpdateView.as_view(), name="warehouse-manifest-update"),
    path("warehouse/customers/", CustomerDirectoryView.as_view(), name="warehouse-customers"),
    # admin
    path("admin/packages/", AdminPackageView.as_view(), name="admin-packages"),
    path("admin/packages/<uuid:pk>/", AdminPackageDetailView.as_view(), name="admin-package-detail"),
    path(
        "admin/packages/<uuid:pk>/invoices/<int:index>/",
        AdminInvoiceReviewView.as_view(),
        name="admin-package-invoice-review",
    ),
    path("admin/pre-alerts/", AdminPreAlertListView.as_view(), name="admin-pre-alerts"),
    path("admin/pre-alerts/<uuid:pk>/decision/", AdminPreAlertDecisionView.as_view(), name="admin-pre-alert-decision"),
]
