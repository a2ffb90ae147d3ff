# recovery_core/audit/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from django.db import DatabaseError, transaction

from recovery_core.audit.models import AuditEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    action: str
    resource_type: str
    resource_id: str
    tenant_id: UUID
    actor_user_id: int | None
    metadata: Dict[str, Any]


class AuditService:
    """
    Central audit writer. Persists into AuditEvent (immutable).
    """

    @staticmethod
    @transaction.atomic
    def log(
        *,
        tenant_id: UUID,
        action: str,
        resource_type: str,
        resource_id: Any = None,
        actor_user_id: int | None = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        metadata = metadata or {}
        rid = "" if resource_id is None else str(resource_id)

        AuditEvent.objects.create(
            tenant_id=tenant_id,
            action=action,
            resource_type=resource_type,
            resource_id=rid,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )

        return AuditRecord(
            action=action,
            resource_type=resource_type,
            resource_id=rid,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )

    @staticmethod
    def log_safely(**kwargs) -> Optional[AuditRecord]:
        """
        Best-effort variant: a failed audit write is logged and swallowed,
        never failing the primary operation. The savepoint keeps an outer
        transaction usable after a failed insert.
        """
        try:
            with transaction.atomic():
                return AuditService.log(**kwargs)
        except (DatabaseError, ValueError, TypeError):
            logger.exception(
                "Audit write failed: action=%s resource_type=%s tenant_id=%s",
                kwargs.get("action"),
                kwargs.get("resource_type"),
                kwargs.get("tenant_id"),
            )
            return None
