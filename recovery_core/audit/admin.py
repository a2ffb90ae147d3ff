# recovery_core/audit/admin.py
from django.contrib import admin

from recovery_core.audit.models import AuditEvent


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("occurred_at", "action", "resource_type", "resource_id", "actor_user", "tenant_id")
    list_filter = ("resource_type",)
    search_fields = ("action", "resource_id")
    date_hierarchy = "occurred_at"

    # append-only trail
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
