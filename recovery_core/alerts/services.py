# recovery_core/alerts/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from recovery_core.alerts.models import AlertSeverity, AlertStatus, ClinicalAlert
from recovery_core.audit.services import AuditService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertContext:
    tenant_id: UUID
    actor_user_id: int | None


class AlertService:
    @staticmethod
    @transaction.atomic
    def create_alert(
        *,
        ctx: AlertContext,
        patient_id: UUID,
        alert_type: str,
        message: str,
        severity: str = AlertSeverity.MEDIUM,
        patient_form_id: UUID | None = None,
        question_id: UUID | None = None,
        requires_immediate_action: bool = False,
        notify_provider: bool = True,
        meta: dict | None = None,
    ) -> ClinicalAlert:
        alert = ClinicalAlert.objects.create(
            tenant_id=ctx.tenant_id,
            patient_id=patient_id,
            patient_form_id=patient_form_id,
            question_id=question_id,
            alert_type=alert_type,
            severity=severity,
            message=message,
            requires_immediate_action=requires_immediate_action,
            notify_provider=notify_provider,
            status=AlertStatus.OPEN,
            meta=meta or {},
        )
        if requires_immediate_action:
            logger.warning(
                "Clinical alert requires immediate action: tenant_id=%s patient_id=%s type=%s alert_id=%s",
                ctx.tenant_id,
                patient_id,
                alert_type,
                alert.id,
            )
        return alert

    @staticmethod
    @transaction.atomic
    def acknowledge(*, ctx: AlertContext, alert_id: UUID) -> ClinicalAlert:
        alert = ClinicalAlert.objects.select_for_update().get(id=alert_id, tenant_id=ctx.tenant_id)

        if alert.status == AlertStatus.RESOLVED:
            raise ValidationError({"detail": "Alert is already resolved."})
        if alert.status != AlertStatus.ACKNOWLEDGED:
            alert.status = AlertStatus.ACKNOWLEDGED
            alert.acknowledged_by_user_id = ctx.actor_user_id
            alert.acknowledged_at = timezone.now()
            alert.save(update_fields=["status", "acknowledged_by_user_id", "acknowledged_at", "updated_at"])

            AuditService.log_safely(
                tenant_id=ctx.tenant_id,
                action="alert.acknowledged",
                resource_type="ClinicalAlert",
                resource_id=alert.id,
                actor_user_id=ctx.actor_user_id,
            )
        return alert

    @staticmethod
    @transaction.atomic
    def resolve(*, ctx: AlertContext, alert_id: UUID, note: str = "") -> ClinicalAlert:
        alert = ClinicalAlert.objects.select_for_update().get(id=alert_id, tenant_id=ctx.tenant_id)

        # idempotent
        if alert.status == AlertStatus.RESOLVED:
            return alert

        now = timezone.now()
        alert.status = AlertStatus.RESOLVED
        alert.resolved_by_user_id = ctx.actor_user_id
        alert.resolved_at = now
        update_fields = ["status", "resolved_by_user_id", "resolved_at", "updated_at"]
        if alert.acknowledged_at is None:
            alert.acknowledged_by_user_id = ctx.actor_user_id
            alert.acknowledged_at = now
            update_fields += ["acknowledged_by_user_id", "acknowledged_at"]
        if note:
            alert.meta = {**(alert.meta or {}), "resolution_note": note}
            update_fields.append("meta")
        alert.save(update_fields=update_fields)

        AuditService.log_safely(
            tenant_id=ctx.tenant_id,
            action="alert.resolved",
            resource_type="ClinicalAlert",
            resource_id=alert.id,
            actor_user_id=ctx.actor_user_id,
            metadata={"note": note} if note else None,
        )
        return alert
