import uuid
from django.conf import settings
from django.db import models

from .status import PackageStatus, internal_to_ui


class Manifest(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    manifest_id = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True)
    courier_id = models.CharField(max_length=100, blank=True)
    service_type_id = models.CharField(max_length=100, blank=True)
    service_type_name = models.CharField(max_length=50, blank=True)
    status_code = models.IntegerField(null=True, blank=True)
    status_label = models.CharField(max_length=50, blank=True)
    code = models.CharField(max_length=100, blank=True)
    flight_date = models.DateTimeField(null=True, blank=True)
    weight = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    item_count = models.PositiveIntegerField(null=True, blank=True)
    manifest_number = models.CharField(max_length=50, blank=True)
    staff_name = models.CharField(max_length=100, blank=True)
    entry_date = models.DateTimeField(null=True, blank=True)
    awb_number = models.CharField(max_length=100, blank=True)
    collection_codes = models.JSONField(default=list, blank=True)
    package_awbs = models.JSONField(default=list, blank=True)
    raw_payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.manifest_id


class Package(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tracking_number = models.CharField(max_length=100, unique=True)
    user_code = models.CharField(max_length=30, blank=True, db_index=True)
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="packages"
    )
    status = models.CharField(max_length=20, choices=PackageStatus.choices, default=PackageStatus.UNKNOWN)
    # [{status, at, note, updated_by}], oldest first, append only
    history = models.JSONField(default=list, blank=True)

    weight = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    shipper = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    length = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    width = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    height = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    cubes = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    pieces = models.PositiveIntegerField(null=True, blank=True)
    branch = models.CharField(max_length=100, blank=True)
    control_number = models.CharField(max_length=100, blank=True, db_index=True)
    service_type_id = models.CharField(max_length=100, blank=True)
    service_type_name = models.CharField(max_length=50, blank=True)
    external_status_label = models.CharField(max_length=50, blank=True)
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    entry_staff = models.CharField(max_length=100, blank=True)
    manifest = models.ForeignKey(
        Manifest, on_delete=models.SET_NULL, null=True, blank=True, related_name="packages"
    )
    customs_required = models.BooleanField(default=False)
    has_discrepancy = models.BooleanField(default=False)
    discrepancy_description = models.TextField(blank=True)
    entry_date = models.DateTimeField(null=True, blank=True)

    invoice_documents = models.JSONField(default=list, blank=True)
    invoice_records = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["status", "updated_at"], name="pkg_status_updated_idx"),
            models.Index(fields=["user_code", "status"], name="pkg_code_status_idx"),
            models.Index(fields=["created_at"], name="pkg_created_idx"),
        ]

    def __str__(self):
        return self.tracking_number

    @property
    def ui_status(self):
        return internal_to_ui(self.status)

    @property
    def is_unknown(self):
        return not self.user_code or self.status == PackageStatus.UNKNOWN


class PreAlert(models.Model):
    class Status(models.TextChoices):
        SUBMITTED = "submitted", "Submitted"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_code = models.CharField(max_length=30, db_index=True)
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="pre_alerts"
    )
    package = models.ForeignKey(
        Package, on_delete=models.SET_NULL, null=True, blank=True, related_name="pre_alerts"
    )
    tracking_number = models.CharField(max_length=100)
    carrier = models.CharField(max_length=100, blank=True)
    origin = models.CharField(max_length=100, blank=True)
    expected_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SUBMITTED)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
