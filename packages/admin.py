from django.contrib import admin

from .models import Manifest, Package, PreAlert


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = ("tracking_number", "user_code", "status", "branch", "weight", "updated_at")
    search_fields = ("tracking_number", "user_code", "control_number", "shipper")
    list_filter = ("status", "branch", "customs_required", "has_discrepancy")
    readonly_fields = ("history", "created_at", "updated_at")


@admin.register(Manifest)
class ManifestAdmin(admin.ModelAdmin):
    list_display = ("manifest_id", "status_label", "service_type_name", "flight_date", "created_at")
    search_fields = ("manifest_id", "awb_number", "code")


@admin.register(PreAlert)
class PreAlertAdmin(admin.ModelAdmin):
    list_display = ("tracking_number", "user_code", "carrier", "status", "created_at")
    search_fields = ("tracking_number", "user_code")
    list_filter = ("status",)
