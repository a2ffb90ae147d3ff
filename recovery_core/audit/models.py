# recovery_core/audit/models.py
from django.conf import settings
from django.db import models

from recovery_core.common.models import TenantScopedModel


class AuditEvent(TenantScopedModel):
    """
    Immutable audit record of who did what to which resource, per tenant.
    """
    action = models.CharField(max_length=128, db_index=True)  # e.g. "protocol.assigned"
    resource_type = models.CharField(max_length=128, db_index=True)  # e.g. "PatientProtocol"
    resource_id = models.CharField(max_length=64, blank=True, db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["tenant_id", "occurred_at"]),
            models.Index(fields=["resource_type", "resource_id"]),
            models.Index(fields=["tenant_id", "action"]),
        ]
