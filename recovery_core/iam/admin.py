# recovery_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from recovery_core.iam.models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "tenant", "role", "first_name", "last_name", "is_active", "created_at")
    list_filter = ("tenant", "role", "is_active")
    search_fields = ("user__username", "user__email", "first_name", "last_name", "email")
    autocomplete_fields = ("user", "tenant")
    ordering = ("-created_at",)
