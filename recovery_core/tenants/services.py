# recovery_core/tenants/services.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError

from recovery_core.audit.services import AuditService
from recovery_core.common.api.exceptions import ConflictError
from recovery_core.tenants.models import SubscriptionTier, Tenant, TenantStatus, TenantType

logger = logging.getLogger(__name__)


def _choice(value: str, choices, field: str) -> str:
    if value not in choices.values:
        raise ValidationError({field: f"Invalid {field}. Allowed: {list(choices.values)}"})
    return value


class TenantService:
    """
    Practice onboarding and lifecycle. Only privileged (cross-tenant) callers
    reach these; the tenant itself is the audit scope.
    """

    @staticmethod
    @transaction.atomic
    def create(
        *,
        name: str,
        code: str,
        tenant_type: str = TenantType.PRACTICE,
        subscription_tier: str = SubscriptionTier.BASIC,
        status: str = TenantStatus.ACTIVE,
        settings: Optional[dict] = None,
        actor_user_id: int | None = None,
    ) -> Tenant:
        name = (name or "").strip()
        code = (code or "").strip().lower()
        if not name:
            raise ValidationError({"name": "This field is required."})
        if not code:
            raise ValidationError({"code": "This field is required."})

        try:
            with transaction.atomic():
                tenant = Tenant.objects.create(
                    name=name,
                    code=code,
                    tenant_type=_choice(tenant_type, TenantType, "tenant_type"),
                    subscription_tier=_choice(subscription_tier, SubscriptionTier, "subscription_tier"),
                    status=_choice(status, TenantStatus, "status"),
                    settings=settings or {},
                )
        except IntegrityError:
            raise ConflictError(f"A practice with code '{code}' already exists.")

        AuditService.log_safely(
            tenant_id=tenant.id,
            action="tenant.created",
            resource_type="Tenant",
            resource_id=tenant.id,
            actor_user_id=actor_user_id,
            metadata={"code": tenant.code, "tenant_type": tenant.tenant_type},
        )
        return tenant

    @staticmethod
    @transaction.atomic
    def set_status(*, tenant_id: UUID, status: str, actor_user_id: int | None = None) -> Tenant:
        _choice(status, TenantStatus, "status")

        tenant = Tenant.objects.select_for_update().get(id=tenant_id)
        previous = tenant.status
        if previous == status:
            return tenant

        tenant.status = status
        tenant.save(update_fields=["status", "updated_at"])

        if not tenant.is_operational:
            logger.warning("Practice %s (%s) is now %s", tenant.code, tenant.id, status)

        AuditService.log_safely(
            tenant_id=tenant.id,
            action="tenant.status_changed",
            resource_type="Tenant",
            resource_id=tenant.id,
            actor_user_id=actor_user_id,
            metadata={"from": previous, "to": status},
        )
        return tenant

    @staticmethod
    @transaction.atomic
    def update_settings(*, tenant_id: UUID, changes: dict, actor_user_id: int | None = None) -> Tenant:
        """Shallow merge; a null value removes the key."""
        if not isinstance(changes, dict):
            raise ValidationError({"settings": "Must be a JSON object."})

        tenant = Tenant.objects.select_for_update().get(id=tenant_id)
        merged = dict(tenant.settings or {})
        for key, value in changes.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value

        tenant.settings = merged
        tenant.save(update_fields=["settings", "updated_at"])

        AuditService.log_safely(
            tenant_id=tenant.id,
            action="tenant.settings_updated",
            resource_type="Tenant",
            resource_id=tenant.id,
            actor_user_id=actor_user_id,
            metadata={"keys": sorted(changes.keys())},
        )
        return tenant
