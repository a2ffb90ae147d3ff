from django.contrib import admin

from recovery_core.alerts.models import ClinicalAlert


@admin.register(ClinicalAlert)
class ClinicalAlertAdmin(admin.ModelAdmin):
    list_display = ("alert_type", "severity", "status", "patient_id", "requires_immediate_action", "created_at")
    list_filter = ("tenant_id", "status", "severity", "alert_type")
    search_fields = ("message", "alert_type")
    readonly_fields = ("created_at", "updated_at", "acknowledged_at", "resolved_at")
    ordering = ("-created_at",)
