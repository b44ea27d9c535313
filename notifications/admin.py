from django.contrib import admin

from .models import Broadcast, Message


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "user_code", "sender", "subject", "is_read", "created_at")
    search_fields = ("user_code", "subject", "body")
    list_filter = ("sender", "is_read")


@admin.register(Broadcast)
class BroadcastAdmin(admin.ModelAdmin):
    list_display = ("title", "total_recipients", "portal_delivered", "email_delivered", "email_failed", "sent_at")
    search_fields = ("title", "body")
