import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PricingRule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(db_index=True, max_length=120)),
                ("origin", models.CharField(db_index=True, max_length=100)),
                ("destination", models.CharField(db_index=True, max_length=100)),
                ("weight_min", models.DecimalField(decimal_places=2, max_digits=10)),
                ("weight_max", models.DecimalField(decimal_places=2, max_digits=10)),
                ("base_rate", models.DecimalField(decimal_places=2, max_digits=10)),
                ("per_kg_rate", models.DecimalField(decimal_places=2, max_digits=10)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["origin", "destination", "active"], name="rate_lane_active_idx"),
                    models.Index(fields=["weight_min", "weight_max"], name="rate_weight_band_idx"),
                ],
            },
        ),
    ]
