from django.contrib import admin

from recovery_core.protocols.models import PatientProtocol, Protocol, ProtocolTask


class ProtocolTaskInline(admin.TabularInline):
    model = ProtocolTask
    extra = 0
    fields = ("day_offset", "sort_order", "task_type", "title", "form_template", "is_required", "frequency")
    ordering = ("day_offset", "sort_order")


@admin.register(Protocol)
class ProtocolAdmin(admin.ModelAdmin):
    list_display = ("name", "surgery_type", "is_template", "is_active", "tenant_id", "created_at")
    list_filter = ("tenant_id", "surgery_type", "is_template", "is_active")
    search_fields = ("name", "description")
    readonly_fields = ("created_at", "updated_at")
    inlines = [ProtocolTaskInline]


@admin.register(PatientProtocol)
class PatientProtocolAdmin(admin.ModelAdmin):
    list_display = ("patient", "protocol", "status", "start_date", "tenant_id", "created_at")
    list_filter = ("tenant_id", "status")
    search_fields = ("patient__mrn", "patient__last_name", "protocol__name")
    readonly_fields = ("created_at", "updated_at", "completed_at", "cancelled_at")
    ordering = ("-created_at",)
