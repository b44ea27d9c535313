from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APITestCase

from account.models import User
from .models import PricingRule
from .services import NoMatchingRate, RateService


def make_rule(**overrides):
    values = {
        "name": "Air standard",
        "origin": "Miami",
        "destination": "Kingston",
        "weight_min": Decimal("0"),
        "weight_max": Decimal("10"),
        "base_rate": Decimal("5.00"),
        "per_kg_rate": Decimal("2.50"),
    }
    values.update(overrides)
    return PricingRule.objects.create(**values)


class RateServiceTests(TestCase):
    def test_quote_uses_base_plus_per_kg(self):
        make_rule()
        quote = RateService.quote("miami", "KINGSTON", Decimal("4"))

        self.assertEqual(quote["total"], Decimal("15.00"))
        self.assertEqual(quote["currency"], "USD")

    def test_band_edges_are_inclusive_and_narrowest_wins(self):
        make_rule()
        make_rule(name="Small parcels", weight_max=Decimal("2"), base_rate=Decimal("3.00"))

        self.assertEqual(RateService.quote("Miami", "Kingston", Decimal("2"))["rule_name"], "Small parcels")
        self.assertEqual(RateService.quote("Miami", "Kingston", Decimal("10"))["rule_name"], "Air standard")

    def test_inactive_and_out_of_band(self):
        make_rule(active=False)
        with self.assertRaisesMessage(NoMatchingRate, "No pricing rule"):
            RateService.quote("Miami", "Kingston", Decimal("1"))

        make_rule()
        with self.assertRaisesMessage(NoMatchingRate, "0.00-10.00kg"):
            RateService.quote("Miami", "Kingston", Decimal("11"))


class PricingRuleApiTests(APITestCase):
    url = "/api/admin/pricing-rules/"

    def setUp(self):
        self.admin = User.objects.create_user(email="a@example.com", password="Pass123!", role=User.Role.ADMIN)

    def payload(self, **overrides):
        data = {
            "name": "Air express",
            "origin": "Miami",
            "destination": "Kingston",
            "weight_min": "0",
            "weight_max": "20",
            "base_rate": "7.50",
            "per_kg_rate": "3.00",
            "currency": "usd",
        }
        data.update(overrides)
        return data

    def test_admin_crud(self):
        self.client.force_authenticate(self.admin)

        created = self.client.post(self.url, self.payload(), format="json")
        self.assertEqual(created.status_code, 201, created.data)
        self.assertEqual(created.data["currency"], "USD")
        detail_url = f"{self.url}{created.data['id']}/"

        updated = self.client.patch(detail_url, {"active": False}, format="json")
        self.assertEqual(updated.status_code, 200, updated.data)
        self.assertFalse(updated.data["active"])

        self.assertEqual(len(self.client.get(self.url).data), 1)
        self.assertEqual(self.client.delete(detail_url).status_code, 204)
        self.assertFalse(PricingRule.objects.exists())

    def test_weight_band_must_be_increasing(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(self.url, self.payload(weight_min="5", weight_max="5"), format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("weight_max", response.data)

        rule = make_rule()
        partial = self.client.patch(f"{self.url}{rule.id}/", {"weight_max": "0"}, format="json")
        self.assertEqual(partial.status_code, 400)

    def test_customers_cannot_manage_rules(self):
        customer = User.objects.create_user(email="c@example.com", password="Pass123!")
        self.client.force_authenticate(customer)
        self.assertEqual(self.client.post(self.url, self.payload(), format="json").status_code, 403)

    def test_public_quote(self):
        make_rule()

        ok = self.client.get("/api/rates/quote/", {"origin": "Miami", "destination": "Kingston", "weight": "10"})
        self.assertEqual(ok.status_code, 200, ok.data)
        self.assertEqual(ok.data["total"], Decimal("30.00"))

        missing = self.client.get("/api/rates/quote/", {"origin": "Miami", "destination": "Montego Bay", "weight": "1"})
        self.assertEqual(missing.status_code, 404)

        invalid = self.client.get("/api/rates/quote/", {"origin": "Miami", "destination": "Kingston", "weight": "0"})
        self.assertEqual(invalid.status_code, 400)
