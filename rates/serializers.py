from rest_framework import serializers

from .models import PricingRule


class PricingRuleSerializer(serializers.ModelSerializer):
    weight_min = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    weight_max = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    base_rate = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    per_kg_rate = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)

    class Meta:
        model = PricingRule
        fields = [
            "id",
            "name",
            "origin",
            "destination",
            "weight_min",
            "weight_max",
            "base_rate",
            "per_kg_rate",
            "currency",
            "active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_currency(self, value):
        return value.strip().upper()

    def validate(self, attrs):
        # partial updates compare against the stored band
        weight_min = attrs.get("weight_min", getattr(self.instance, "weight_min", None))
        weight_max = attrs.get("weight_max", getattr(self.instance, "weight_max", None))
        if weight_min is not None and weight_max is not None and weight_max <= weight_min:
            raise serializers.ValidationError({"weight_max": "weight_max must be greater than weight_min"})
        return attrs


class QuoteRequestSerializer(serializers.Serializer):
    origin = serializers.CharField(max_length=100)
    destination = serializers.CharField(max_length=100)
    weight = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)

    def validate_weight(self, value):
        if value <= 0:
            raise serializers.ValidationError("weight must be greater than zero")
        return value
