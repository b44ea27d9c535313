from django.urls import path

from .views import (
    ApiKeyDeactivateView,
    ApiKeyListCreateView,
    ExternalAddPackageView,
    ExternalCustomerPullView,
    ExternalManifestView,
)


urlpatterns = [
    path("warehouse/addpackage/subdir/", ExternalAddPackageView.as_view(), name="external-addpackage"),
    path("warehouse/updatemanifest/subdir/", ExternalManifestView.as_view(), name="external-updatemanifest"),
    path("warehouse/pullcustomer/subdir/", ExternalCustomerPullView.as_view(), name="external-pullcustomer"),
    path("admin/api-keys/", ApiKeyListCreateView.as_view(), name="admin-api-keys"),
    path("admin/api-keys/<uuid:pk>/deactivate/", ApiKeyDeactivateView.as_view(), name="admin-api-keys-deactivate"),
]
