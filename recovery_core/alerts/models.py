# recovery_core/alerts/models.py
from __future__ import annotations

from django.db import models

from recovery_core.common.models import TenantScopedModel


class AlertSeverity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class AlertStatus(models.TextChoices):
    OPEN = "open", "Open"
    ACKNOWLEDGED = "acknowledged", "Acknowledged"
    RESOLVED = "resolved", "Resolved"


class ClinicalAlert(TenantScopedModel):
    """
    Clinician-facing flag raised from a patient's answer (pain spike,
    concerning symptom, out-of-range value).
    Links stay loose (UUID fields) so that alerts never block form/patient changes.
    """
    patient_id = models.UUIDField(db_index=True)
    patient_form_id = models.UUIDField(null=True, blank=True, db_index=True)
    question_id = models.UUIDField(null=True, blank=True)

    alert_type = models.CharField(max_length=64, db_index=True)  # e.g. "high_pain_level"
    severity = models.CharField(
        max_length=16,
        choices=AlertSeverity.choices,
        default=AlertSeverity.MEDIUM,
        db_index=True,
    )
    message = models.TextField()

    requires_immediate_action = models.BooleanField(default=False)
    notify_provider = models.BooleanField(default=True)

    status = models.CharField(
        max_length=16,
        choices=AlertStatus.choices,
        default=AlertStatus.OPEN,
        db_index=True,
    )

    acknowledged_by_user_id = models.IntegerField(null=True, blank=True)
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    resolved_by_user_id = models.IntegerField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    meta = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "alerts_clinical_alert"
        indexes = [
            models.Index(fields=["tenant_id", "status", "severity"]),
            models.Index(fields=["tenant_id", "patient_id", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"[{self.severity}] {self.alert_type}: {self.message[:60]}"
