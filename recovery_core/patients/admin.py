from django.contrib import admin

from recovery_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        "first_name",
        "last_name",
        "mrn",
        "surgery_date",
        "surgery_type",
        "status",
        "tenant_id",
        "created_at",
    )
    list_filter = ("tenant_id", "status", "surgery_type")
    search_fields = ("first_name", "last_name", "mrn", "phone", "email")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)
