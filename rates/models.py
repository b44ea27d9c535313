import uuid
from decimal import Decimal

from django.db import models


class PricingRuleQuerySet(models.QuerySet):
    def active(self):
        return self.filter(active=True)

    def matching(self, origin, destination, weight):
        """Active rules for the lane whose inclusive weight band covers ``weight``."""
        return self.active().filter(
            origin__iexact=(origin or "").strip(),
            destination__iexact=(destination or "").strip(),
            weight_min__lte=weight,
            weight_max__gte=weight,
        )


class PricingRule(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120, db_index=True)
    origin = models.CharField(max_length=100, db_index=True)
    destination = models.CharField(max_length=100, db_index=True)
    weight_min = models.DecimalField(max_digits=10, decimal_places=2)
    weight_max = models.DecimalField(max_digits=10, decimal_places=2)
    base_rate = models.DecimalField(max_digits=10, decimal_places=2)
    per_kg_rate = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="USD")
    active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PricingRuleQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["origin", "destination", "active"], name="rate_lane_active_idx"),
            models.Index(fields=["weight_min", "weight_max"], name="rate_weight_band_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.origin} -> {self.destination})"

    def cost_for(self, weight: Decimal) -> Decimal:
        return (self.base_rate + weight * self.per_kg_rate).quantize(Decimal("0.01"))
