# recovery_core/protocols/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

from recovery_core.common.models import TenantScopedModel
from recovery_core.patients.models import SurgeryType


class TaskType(models.TextChoices):
    FORM = "form", "Form"
    EXERCISE = "exercise", "Exercise"
    EDUCATION = "education", "Education"
    WALKING = "walking", "Walking"
    MEDICATION = "medication", "Medication"


class Protocol(TenantScopedModel):
    """
    Tenant-scoped template: an ordered set of task definitions positioned
    relative to surgery day.
    """
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    surgery_type = models.CharField(max_length=16, choices=SurgeryType.choices, blank=True)

    is_template = models.BooleanField(default=True, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_protocols",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "protocols_protocol"
        indexes = [
            models.Index(fields=["tenant_id", "is_active", "is_template"]),
            models.Index(fields=["tenant_id", "surgery_type"]),
        ]

    def __str__(self) -> str:
        return self.name


class ProtocolTask(TenantScopedModel):
    """
    Task definition inside a protocol.

    day_offset is relative to the anchor date: negative = pre-op,
    0 = surgery day, positive = post-op.

    frequency: {"start_day": int, "stop_day": int, "repeat": bool}
    (a repeating task is shown on every day in [start_day, stop_day]).
    """
    protocol = models.ForeignKey(Protocol, on_delete=models.CASCADE, related_name="tasks")

    day_offset = models.IntegerField(db_index=True)
    task_type = models.CharField(max_length=16, choices=TaskType.choices)

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    content = models.JSONField(default=dict, blank=True)

    form_template = models.ForeignKey(
        "forms.FormTemplate",
        on_delete=models.PROTECT,
        related_name="protocol_tasks",
        null=True,
        blank=True,
    )

    is_required = models.BooleanField(default=True)
    frequency = models.JSONField(default=dict, blank=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "protocols_protocol_task"
        ordering = ["day_offset", "sort_order", "created_at"]
        indexes = [
            models.Index(fields=["protocol", "day_offset", "sort_order"]),
        ]

    @property
    def start_day(self) -> int:
        return int(self.frequency.get("start_day", self.day_offset))

    @property
    def stop_day(self) -> int:
        return int(self.frequency.get("stop_day", self.start_day))

    @property
    def repeats(self) -> bool:
        return bool(self.frequency.get("repeat", False))

    def is_shown_on_day(self, day: int) -> bool:
        """
        Non-repeating: only on its start day. Repeating: every day in [start_day, stop_day].
        """
        if not self.repeats:
            return day == self.start_day
        return self.start_day <= day <= self.stop_day

    def __str__(self) -> str:
        return f"{self.title} (day {self.day_offset})"


class AssignmentStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class PatientProtocol(TenantScopedModel):
    """
    A protocol applied to one patient, anchored to a concrete start date.
    At most one active assignment per patient (partial unique constraint).
    """
    patient = models.ForeignKey("patients.Patient", on_delete=models.CASCADE, related_name="protocol_assignments")
    protocol = models.ForeignKey(Protocol, on_delete=models.PROTECT, related_name="assignments")

    status = models.CharField(
        max_length=16,
        choices=AssignmentStatus.choices,
        default=AssignmentStatus.ACTIVE,
        db_index=True,
    )

    start_date = models.DateField()
    # surgery date at assignment time (the patient's may change later)
    surgery_date = models.DateField(null=True, blank=True)

    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="protocol_assignments",
        null=True,
        blank=True,
    )

    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "protocols_patient_protocol"
        constraints = [
            models.UniqueConstraint(
                fields=["patient"],
                condition=Q(status="active"),
                name="uq_one_active_protocol_per_patient",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "status"]),
            models.Index(fields=["tenant_id", "patient", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.patient_id} -> {self.protocol_id} ({self.status})"
