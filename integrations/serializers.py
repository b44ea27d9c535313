from rest_framework import serializers

from .models import ApiKey


class ApiKeySerializer(serializers.ModelSerializer):
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=ApiKey.Permission.choices), required=False, default=list
    )

    class Meta:
        model = ApiKey
        fields = [
            "id",
            "name",
            "key_prefix",
            "permissions",
            "active",
            "expires_at",
            "last_used_at",
            "usage_count",
            "created_at",
        ]
        read_only_fields = ["id", "key_prefix", "last_used_at", "usage_count", "created_at"]


class ApiKeyCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=ApiKey.Permission.choices), allow_empty=False
    )
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    environment = serializers.ChoiceField(choices=["live", "test"], default="live")
