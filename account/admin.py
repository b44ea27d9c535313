from django.contrib import admin

from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("email", "user_code", "role", "branch", "account_status", "created_at")
    search_fields = ("email", "user_code", "first_name", "last_name")
    list_filter = ("role", "account_status", "branch")
