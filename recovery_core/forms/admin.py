from django.contrib import admin

from recovery_core.forms.models import FormResponse, FormSection, FormTemplate, PatientForm, Question, SectionQuestion


class FormSectionInline(admin.TabularInline):
    model = FormSection
    extra = 0
    fields = ("sort_order", "name", "description")
    ordering = ("sort_order",)


class SectionQuestionInline(admin.TabularInline):
    model = SectionQuestion
    extra = 0
    fields = ("sort_order", "question", "is_required_override", "custom_validation")
    raw_id_fields = ("question",)


@admin.register(FormTemplate)
class FormTemplateAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "tenant_id", "created_at")
    list_filter = ("tenant_id", "is_active")
    search_fields = ("name", "description")
    readonly_fields = ("created_at", "updated_at")
    inlines = [FormSectionInline]


@admin.register(FormSection)
class FormSectionAdmin(admin.ModelAdmin):
    list_display = ("name", "template", "sort_order")
    search_fields = ("name", "template__name")
    inlines = [SectionQuestionInline]


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ("text", "question_type", "is_required", "tenant_id")
    list_filter = ("tenant_id", "question_type", "is_required")
    search_fields = ("text",)


@admin.register(PatientForm)
class PatientFormAdmin(admin.ModelAdmin):
    list_display = ("template", "patient", "status", "completion_percentage", "assigned_date", "tenant_id")
    list_filter = ("tenant_id", "status")
    search_fields = ("patient__mrn", "patient__last_name", "template__name")
    readonly_fields = ("created_at", "updated_at", "started_at", "completed_at")
    ordering = ("-assigned_date",)


@admin.register(FormResponse)
class FormResponseAdmin(admin.ModelAdmin):
    list_display = ("patient_form", "question", "response_method", "created_at")
    list_filter = ("tenant_id", "response_type", "response_method")
    readonly_fields = [f.name for f in FormResponse._meta.fields]

    def has_change_permission(self, request, obj=None):
        return False
