from django.contrib import admin

from .models import ApiKey


@admin.register(ApiKey)
class ApiKeyAdmin(admin.ModelAdmin):
    list_display = ("name", "key_prefix", "active", "expires_at", "last_used_at", "usage_count")
    search_fields = ("name", "key_prefix")
    list_filter = ("active",)
    readonly_fields = ("key", "key_prefix", "last_used_at", "usage_count")
