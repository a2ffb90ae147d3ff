# recovery_core/forms/models.py
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from recovery_core.common.models import TenantScopedModel


class QuestionType(models.TextChoices):
    TEXT = "text", "Text"
    TEXTAREA = "textarea", "Long text"
    NUMBER = "number", "Number"
    SCALE = "scale", "Scale (0-10)"
    PAIN_SCALE = "pain_scale", "Pain scale (0-10)"
    YES_NO = "yes_no", "Yes / No"
    SINGLE_CHOICE = "single_choice", "Single choice"
    MULTIPLE_CHOICE = "multiple_choice", "Multiple choice"
    DATE = "date", "Date"
    EMAIL = "email", "Email"
    PHONE = "phone", "Phone"


class FormTemplate(TenantScopedModel):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_form_templates",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "forms_form_template"
        indexes = [
            models.Index(fields=["tenant_id", "is_active"]),
        ]

    def __str__(self) -> str:
        return self.name


class FormSection(TenantScopedModel):
    template = models.ForeignKey(FormTemplate, on_delete=models.CASCADE, related_name="sections")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "forms_form_section"
        ordering = ["sort_order", "created_at", "id"]

    def __str__(self) -> str:
        return self.name


class Question(TenantScopedModel):
    """
    Tenant question bank entry, reusable across templates.

    validation_rules: {"min", "max", "min_length", "max_length", "pattern", "message"}
    clinical_alerts:  {"concerning_if_yes", "max_threshold", "min_threshold",
                       "alert_keywords", "severity", "message", "immediate_action"}
    """
    text = models.TextField()
    question_type = models.CharField(max_length=32, choices=QuestionType.choices)
    is_required = models.BooleanField(default=False)
    help_text = models.TextField(blank=True)

    options = models.JSONField(default=list, blank=True)
    validation_rules = models.JSONField(default=dict, blank=True)
    voice_prompt = models.TextField(blank=True)
    clinical_alerts = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "forms_question"
        indexes = [
            models.Index(fields=["tenant_id", "question_type"]),
        ]

    def __str__(self) -> str:
        return self.text[:80]


class SectionQuestion(TenantScopedModel):
    section = models.ForeignKey(FormSection, on_delete=models.CASCADE, related_name="section_questions")
    question = models.ForeignKey(Question, on_delete=models.PROTECT, related_name="placements")
    sort_order = models.PositiveIntegerField(default=0)

    # None = inherit question.is_required
    is_required_override = models.BooleanField(null=True, blank=True)
    custom_validation = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "forms_section_question"
        ordering = ["sort_order", "created_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["section", "question"], name="uq_question_once_per_section"),
        ]

    @property
    def effective_required(self) -> bool:
        if self.is_required_override is not None:
            return self.is_required_override
        return self.question.is_required


class PatientFormStatus(models.TextChoices):
    NOT_STARTED = "not_started", "Not started"
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"


class PatientForm(TenantScopedModel):
    """
    One issued copy of a template for one patient (per day when issued from a protocol task).
    """
    patient = models.ForeignKey("patients.Patient", on_delete=models.CASCADE, related_name="forms")
    template = models.ForeignKey(FormTemplate, on_delete=models.PROTECT, related_name="instances")

    protocol_task = models.ForeignKey(
        "protocols.ProtocolTask",
        on_delete=models.SET_NULL,
        related_name="patient_forms",
        null=True,
        blank=True,
    )
    task = models.ForeignKey(
        "tasks.PatientTask",
        on_delete=models.SET_NULL,
        related_name="forms",
        null=True,
        blank=True,
    )

    assigned_date = models.DateField(db_index=True)
    due_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=16,
        choices=PatientFormStatus.choices,
        default=PatientFormStatus.NOT_STARTED,
        db_index=True,
    )
    completion_percentage = models.PositiveSmallIntegerField(default=0)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "forms_patient_form"
        indexes = [
            models.Index(fields=["tenant_id", "patient", "status"]),
            models.Index(fields=["tenant_id", "patient", "assigned_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.template_id} for {self.patient_id} ({self.status})"


class ResponseMethod(models.TextChoices):
    TEXT = "text", "Text"
    VOICE = "voice", "Voice"
    BUTTON = "button", "Button"
    SELECTION = "selection", "Selection"


class FormResponse(TenantScopedModel):
    """
    Append-only answer row. A resubmitted answer is a new row; readers take
    the latest row per question.
    """
    patient_form = models.ForeignKey(PatientForm, on_delete=models.CASCADE, related_name="responses")
    question = models.ForeignKey(Question, on_delete=models.PROTECT, related_name="responses")
    patient = models.ForeignKey("patients.Patient", on_delete=models.CASCADE, related_name="form_responses")

    response_value = models.JSONField(null=True, blank=True)  # as submitted
    parsed_value = models.JSONField(null=True, blank=True)  # normalised by question type
    response_type = models.CharField(max_length=32, choices=QuestionType.choices)
    response_method = models.CharField(max_length=16, choices=ResponseMethod.choices, default=ResponseMethod.TEXT)
    time_to_respond = models.PositiveIntegerField(null=True, blank=True)  # seconds

    class Meta:
        db_table = "forms_form_response"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["patient_form", "question", "created_at"]),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Form responses are append-only.")
        return super().save(*args, **kwargs)
