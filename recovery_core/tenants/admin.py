# recovery_core/tenants/admin.py
from django.contrib import admin

from recovery_core.tenants.models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "tenant_type", "subscription_tier", "status")
    list_filter = ("tenant_type", "subscription_tier", "status")
    search_fields = ("name", "code")
    readonly_fields = ("id", "created_at", "updated_at")
