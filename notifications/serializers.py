from rest_framework import serializers

from .models import Broadcast, Message


class MessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = ["id", "user_code", "subject", "body", "sender", "is_read", "broadcast", "created_at"]
        read_only_fields = ["id", "user_code", "sender", "is_read", "broadcast", "created_at"]


class SupportReplySerializer(serializers.Serializer):
    user_code = serializers.CharField(max_length=30)
    subject = serializers.CharField(max_length=255, required=False, allow_blank=True)
    body = serializers.CharField()


class BroadcastSerializer(serializers.ModelSerializer):
    channels = serializers.ListField(
        child=serializers.ChoiceField(choices=Broadcast.Channel.choices),
        required=False,
        allow_empty=False,
    )

    class Meta:
        model = Broadcast
        fields = [
            "id",
            "title",
            "body",
            "channels",
            "scheduled_at",
            "sent_at",
            "total_recipients",
            "portal_delivered",
            "email_delivered",
            "email_failed",
            "created_at",
        ]
        read_only_fields = [
            "id",
            "sent_at",
            "total_recipients",
            "portal_delivered",
            "email_delivered",
            "email_failed",
            "created_at",
        ]
