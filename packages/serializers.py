from rest_framework import serializers

from .models import Manifest, Package, PreAlert
from .status import (
    EXTERNAL_STATUS_LABELS,
    PackageStatus,
    UiStatus,
    external_to_internal,
    is_known_external_status,
    ui_to_internal,
)


class PackageSerializer(serializers.ModelSerializer):
    ui_status = serializers.CharField(read_only=True)
    manifest_id = serializers.CharField(source="manifest.manifest_id", read_only=True, default=None)

    class Meta:
        model = Package
        fields = [
            "id",
            "tracking_number",
            "user_code",
            "status",
            "ui_status",
            "weight",
            "shipper",
            "description",
            "length",
            "width",
            "height",
            "cubes",
            "pieces",
            "branch",
            "control_number",
            "service_type_id",
            "service_type_name",
            "external_status_label",
            "first_name",
            "last_name",
            "entry_staff",
            "manifest_id",
            "customs_required",
            "has_discrepancy",
            "discrepancy_description",
            "entry_date",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PackageDetailSerializer(PackageSerializer):
    class Meta(PackageSerializer.Meta):
        fields = PackageSerializer.Meta.fields + ["history", "invoice_documents", "invoice_records"]
        read_only_fields = fields


class TrackingSerializer(serializers.ModelSerializer):
    ui_status = serializers.CharField(read_only=True)
    last_update = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Package
        fields = ["tracking_number", "status", "ui_status", "branch", "last_update", "history"]


class PackageFieldsSerializer(serializers.Serializer):
    """Optional metadata accepted alongside a package write; blanks are ignored downstream."""

    user_code = serializers.CharField(required=False, allow_blank=True, max_length=30)
    weight = serializers.DecimalField(required=False, allow_null=True, max_digits=10, decimal_places=2, min_value=0)
    shipper = serializers.CharField(required=False, allow_blank=True, max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    length = serializers.DecimalField(required=False, allow_null=True, max_digits=10, decimal_places=2, min_value=0)
    width = serializers.DecimalField(required=False, allow_null=True, max_digits=10, decimal_places=2, min_value=0)
    height = serializers.DecimalField(required=False, allow_null=True, max_digits=10, decimal_places=2, min_value=0)
    pieces = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    branch = serializers.CharField(required=False, allow_blank=True, max_length=100)
    control_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
    manifest_id = serializers.CharField(required=False, allow_blank=True, max_length=100)
    customs_required = serializers.BooleanField(required=False)
    has_discrepancy = serializers.BooleanField(required=False)
    discrepancy_description = serializers.CharField(required=False, allow_blank=True)

    FIELD_NAMES = (
        "user_code",
        "weight",
        "shipper",
        "description",
        "length",
        "width",
        "height",
        "pieces",
        "branch",
        "control_number",
        "manifest_id",
        "customs_required",
        "has_discrepancy",
        "discrepancy_description",
    )

    def package_fields(self):
        return {name: self.validated_data[name] for name in self.FIELD_NAMES if name in self.validated_data}


class AddPackageSerializer(PackageFieldsSerializer):
    tracking_number = serializers.CharField(max_length=100)
    note = serializers.CharField(required=False, allow_blank=True)

    def validate_tracking_number(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("tracking_number is required")
        return value


class StatusUpdateSerializer(AddPackageSerializer):
    status = serializers.ChoiceField(choices=PackageStatus.choices, required=False)
    status_ui = serializers.ChoiceField(choices=UiStatus.choices, required=False)
    external_status = serializers.JSONField(required=False)
    location = serializers.CharField(required=False, allow_blank=True, max_length=100)

    def validate_external_status(self, value):
        if not is_known_external_status(value):
            raise serializers.ValidationError(
                f"Unknown external status. Expected one of {sorted(EXTERNAL_STATUS_LABELS)} or their labels."
            )
        return value

    def validate(self, attrs):
        if not any(key in attrs for key in ("status", "status_ui", "external_status")):
            raise serializers.ValidationError({"status": "One of status, status_ui or external_status is required."})
        return attrs

    @property
    def resolved_status(self):
        data = self.validated_data
        if "status_ui" in data:
            return ui_to_internal(data["status_ui"])
        if "external_status" in data:
            return external_to_internal(data["external_status"])
        return data["status"]


class DeletePackageSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(max_length=100)
    note = serializers.CharField(required=False, allow_blank=True)


class LinkPackageSerializer(serializers.Serializer):
    user_code = serializers.CharField(max_length=30)


class BulkUploadSerializer(serializers.Serializer):
    packages = serializers.ListField(child=serializers.JSONField(), allow_empty=True)


class ManifestSerializer(serializers.ModelSerializer):
    package_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Manifest
        fields = [
            "id",
            "manifest_id",
            "description",
            "courier_id",
            "service_type_id",
            "service_type_name",
            "status_code",
            "status_label",
            "code",
            "flight_date",
            "weight",
            "item_count",
            "manifest_number",
            "staff_name",
            "entry_date",
            "awb_number",
            "collection_codes",
            "package_awbs",
            "package_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ManifestUpdateSerializer(serializers.Serializer):
    manifest_id = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)
    flight_date = serializers.DateTimeField(required=False, allow_null=True)
    awb_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
    tracking_numbers = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    status = serializers.ChoiceField(choices=PackageStatus.choices, required=False)
    status_ui = serializers.ChoiceField(choices=UiStatus.choices, required=False)
    note = serializers.CharField(required=False, allow_blank=True)


class PreAlertSerializer(serializers.ModelSerializer):
    class Meta:
        model = PreAlert
        fields = [
            "id",
            "user_code",
            "tracking_number",
            "carrier",
            "origin",
            "expected_date",
            "notes",
            "status",
            "decided_at",
            "created_at",
        ]
        read_only_fields = ["id", "user_code", "status", "decided_at", "created_at"]


class PreAlertDecisionSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=[PreAlert.Status.APPROVED, PreAlert.Status.REJECTED])


class InvoiceReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=["reviewed", "rejected"])
    note = serializers.CharField(required=False, allow_blank=True)
