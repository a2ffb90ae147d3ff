from django.contrib import admin

from recovery_core.tasks.models import PatientTask


@admin.register(PatientTask)
class PatientTaskAdmin(admin.ModelAdmin):
    list_display = ("title", "patient", "task_type", "day_offset", "due_date", "status", "tenant_id")
    list_filter = ("tenant_id", "status", "task_type")
    search_fields = ("title", "patient__mrn", "patient__last_name")
    readonly_fields = ("created_at", "updated_at", "started_at", "completed_at")
    ordering = ("due_date", "day_offset")
