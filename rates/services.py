import logging
from decimal import Decimal
from typing import Any, Dict

from .models import PricingRule

logger = logging.getLogger(__name__)


class NoMatchingRate(Exception):
    status_code = 404


class RateService:
    @staticmethod
    def quote(origin: str, destination: str, weight: Decimal) -> Dict[str, Any]:
        """Price a shipment with the first active rule for the lane and weight band.

        Narrower bands win when several rules overlap.
        """
        candidates = PricingRule.objects.matching(origin, destination, weight)
        rule = min(candidates, key=lambda r: (r.weight_max - r.weight_min, r.created_at), default=None)
        if rule is None:
            available = PricingRule.objects.active().filter(
                origin__iexact=origin.strip(), destination__iexact=destination.strip()
            )
            if available.exists():
                bands = ", ".join(f"{r.weight_min}-{r.weight_max}kg" for r in available.order_by("weight_min"))
                raise NoMatchingRate(f"Weight {weight}kg is outside the available ranges: {bands}")
            raise NoMatchingRate(f"No pricing rule for {origin} to {destination}")

        cost = rule.cost_for(weight)
        logger.debug("Quoted %s for %s->%s %skg using rule=%s", cost, origin, destination, weight, rule.id)
        return {
            "rule_id": str(rule.id),
            "rule_name": rule.name,
            "origin": rule.origin,
            "destination": rule.destination,
            "weight": weight,
            "base_rate": rule.base_rate,
            "per_kg_rate": rule.per_kg_rate,
            "total": cost,
            "currency": rule.currency,
        }
