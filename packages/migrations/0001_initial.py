import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


STATUS_CHOICES = [
    ("Unknown", "Unknown"),
    ("At Warehouse", "At Warehouse"),
    ("In Transit", "In Transit"),
    ("At Local Port", "At Local Port"),
    ("Delivered", "Delivered"),
    ("Deleted", "Deleted"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Manifest",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("manifest_id", models.CharField(max_length=100, unique=True)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("courier_id", models.CharField(blank=True, max_length=100)),
                ("service_type_id", models.CharField(blank=True, max_length=100)),
                ("service_type_name", models.CharField(blank=True, max_length=50)),
                ("status_code", models.IntegerField(blank=True, null=True)),
                ("status_label", models.CharField(blank=True, max_length=50)),
                ("code", models.CharField(blank=True, max_length=100)),
                ("flight_date", models.DateTimeField(blank=True, null=True)),
                ("weight", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("item_count", models.PositiveIntegerField(blank=True, null=True)),
                ("manifest_number", models.CharField(blank=True, max_length=50)),
                ("staff_name", models.CharField(blank=True, max_length=100)),
                ("entry_date", models.DateTimeField(blank=True, null=True)),
                ("awb_number", models.CharField(blank=True, max_length=100)),
                ("collection_codes", models.JSONField(blank=True, default=list)),
                ("package_awbs", models.JSONField(blank=True, default=list)),
                ("raw_payload", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Package",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tracking_number", models.CharField(max_length=100, unique=True)),
                ("user_code", models.CharField(blank=True, db_index=True, max_length=30)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="Unknown", max_length=20)),
                ("history", models.JSONField(blank=True, default=list)),
                ("weight", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("shipper", models.CharField(blank=True, max_length=255)),
                ("description", models.TextField(blank=True)),
                ("length", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("width", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("height", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("cubes", models.DecimalField(blank=True, decimal_places=3, max_digits=10, null=True)),
                ("pieces", models.PositiveIntegerField(blank=True, null=True)),
                ("branch", models.CharField(blank=True, max_length=100)),
                ("control_number", models.CharField(blank=True, db_index=True, max_length=100)),
                ("service_type_id", models.CharField(blank=True, max_length=100)),
                ("service_type_name", models.CharField(blank=True, max_length=50)),
                ("external_status_label", models.CharField(blank=True, max_length=50)),
                ("first_name", models.CharField(blank=True, max_length=100)),
                ("last_name", models.CharField(blank=True, max_length=100)),
                ("entry_staff", models.CharField(blank=True, max_length=100)),
                ("customs_required", models.BooleanField(default=False)),
                ("has_discrepancy", models.BooleanField(default=False)),
                ("discrepancy_description", models.TextField(blank=True)),
                ("entry_date", models.DateTimeField(blank=True, null=True)),
                ("invoice_documents", models.JSONField(blank=True, default=list)),
                ("invoice_records", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="packages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "manifest",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="packages",
                        to="packages.manifest",
                    ),
                ),
            ],
            options={
                "ordering": ["-updated_at"],
                "indexes": [
                    models.Index(fields=["status", "updated_at"], name="pkg_status_updated_idx"),
                    models.Index(fields=["user_code", "status"], name="pkg_code_status_idx"),
                    models.Index(fields=["created_at"], name="pkg_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PreAlert",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_code", models.CharField(db_index=True, max_length=30)),
                ("tracking_number", models.CharField(max_length=100)),
                ("carrier", models.CharField(blank=True, max_length=100)),
                ("origin", models.CharField(blank=True, max_length=100)),
                ("expected_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("submitted", "Submitted"), ("approved", "Approved"), ("rejected", "Rejected")],
                        default="submitted",
                        max_length=20,
                    ),
                ),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pre_alerts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "decided_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "package",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pre_alerts",
                        to="packages.package",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
