# recovery_core/tasks/models.py
from django.db import models

from recovery_core.common.dates import utc_today
from recovery_core.common.models import TenantScopedModel
from recovery_core.protocols.models import TaskType


class TaskStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    OVERDUE = "overdue", "Overdue"


class PatientTask(TenantScopedModel):
    """
    Materialized task: one row per (assignment, task definition), with an
    absolute due date = assignment anchor + day_offset.
    """
    patient = models.ForeignKey("patients.Patient", on_delete=models.CASCADE, related_name="tasks")
    assignment = models.ForeignKey(
        "protocols.PatientProtocol",
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    protocol_task = models.ForeignKey(
        "protocols.ProtocolTask",
        on_delete=models.CASCADE,
        related_name="patient_tasks",
    )

    # copied from the definition at materialization time
    title = models.CharField(max_length=255)
    task_type = models.CharField(max_length=16, choices=TaskType.choices)
    day_offset = models.IntegerField()
    is_required = models.BooleanField(default=True)

    due_date = models.DateField(db_index=True)

    status = models.CharField(
        max_length=16,
        choices=TaskStatus.choices,
        default=TaskStatus.PENDING,
        db_index=True,
    )
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completion_data = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "tasks_patient_task"
        ordering = ["due_date", "day_offset", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["assignment", "protocol_task"],
                name="uq_patient_task_per_assignment_definition",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "patient", "due_date"]),
            models.Index(fields=["tenant_id", "status", "due_date"]),
        ]

    @property
    def is_overdue(self) -> bool:
        """
        Overdue if the due date (UTC calendar day) has passed and the task is not completed.
        """
        if self.status == TaskStatus.COMPLETED:
            return False
        return self.due_date < utc_today()

    def __str__(self) -> str:
        return f"{self.title} due {self.due_date} ({self.status})"
