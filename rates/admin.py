from django.contrib import admin

from .models import PricingRule


@admin.register(PricingRule)
class PricingRuleAdmin(admin.ModelAdmin):
    list_display = ("name", "origin", "destination", "weight_min", "weight_max", "base_rate", "per_kg_rate", "active")
    list_filter = ("active", "origin", "destination")
    search_fields = ("name", "origin", "destination")
