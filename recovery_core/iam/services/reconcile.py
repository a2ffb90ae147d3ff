# recovery_core/iam/services/reconcile.py
"""
Profile reconciliation (self-healing record creation).

An authenticated principal without a Profile (or a patient Profile without a
Patient row) is a data-integrity gap. Instead of failing the login we
synthesise the missing rows with defaulted fields and log a warning.
Runs only from session bootstrap and the reconcile_profiles command.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from django.db import transaction

from recovery_core.iam.models import Profile, ProfileRole
from recovery_core.patients.models import Patient
from recovery_core.tenants.selectors import get_tenant_or_none

logger = logging.getLogger(__name__)

DEFAULT_FIRST_NAME = "Unknown"
DEFAULT_LAST_NAME = "User"


@dataclass(frozen=True)
class ReconcileResult:
    profile: Profile
    patient: Optional[Patient]
    created_profile: bool
    created_patient: bool

    @property
    def changed(self) -> bool:
        return self.created_profile or self.created_patient


def _role_from_metadata(metadata: dict) -> str:
    raw = (metadata.get("user_type") or metadata.get("role") or "").strip().lower()
    if raw in ProfileRole.values:
        return raw
    return ProfileRole.PATIENT


def _tenant_id_from_metadata(metadata: dict) -> Optional[UUID]:
    raw = metadata.get("tenant_id")
    if not raw:
        return None
    try:
        tenant_id = UUID(str(raw))
    except ValueError:
        logger.warning("Ignoring malformed tenant_id in user metadata: %r", raw)
        return None
    if get_tenant_or_none(tenant_id=tenant_id) is None:
        logger.warning("Ignoring unknown tenant_id in user metadata: %s", tenant_id)
        return None
    return tenant_id


def _names_for(user, metadata: dict) -> tuple[str, str]:
    first = (metadata.get("first_name") or getattr(user, "first_name", "") or "").strip()
    last = (metadata.get("last_name") or getattr(user, "last_name", "") or "").strip()

    if not first:
        full_name = (metadata.get("full_name") or "").strip()
        if not full_name:
            email = getattr(user, "email", "") or ""
            full_name = email.split("@", 1)[0] if email else ""
        if full_name:
            parts = full_name.split(" ", 1)
            first = parts[0]
            if not last and len(parts) > 1:
                last = parts[1]

    return first or DEFAULT_FIRST_NAME, last or DEFAULT_LAST_NAME


def _generate_mrn() -> str:
    return f"AUTO-{uuid.uuid4().hex[:10].upper()}"


class ProfileReconcileService:
    @staticmethod
    @transaction.atomic
    def reconcile(user, *, metadata: Optional[dict[str, Any]] = None) -> ReconcileResult:
        """
        Idempotent: a second call for the same user creates nothing.
        """
        metadata = metadata or {}

        created_profile = False
        profile = Profile.objects.select_for_update().filter(user_id=user.id).first()
        if profile is None:
            first_name, last_name = _names_for(user, metadata)
            profile = Profile.objects.create(
                user=user,
                tenant_id=_tenant_id_from_metadata(metadata),
                role=_role_from_metadata(metadata),
                first_name=first_name,
                last_name=last_name,
                email=getattr(user, "email", "") or "",
            )
            created_profile = True
            logger.warning(
                "Reconciled missing profile: user_id=%s role=%s tenant_id=%s",
                user.id,
                profile.role,
                profile.tenant_id,
            )

        patient = None
        created_patient = False
        if profile.role == ProfileRole.PATIENT:
            patient = Patient.objects.filter(profile=profile).first()
            if patient is None and profile.tenant_id is not None:
                patient = Patient.objects.create(
                    tenant_id=profile.tenant_id,
                    profile=profile,
                    mrn=_generate_mrn(),
                    first_name=profile.first_name or DEFAULT_FIRST_NAME,
                    last_name=profile.last_name or DEFAULT_LAST_NAME,
                    email=profile.email,
                )
                created_patient = True
                logger.warning(
                    "Reconciled missing patient record: profile_id=%s tenant_id=%s patient_id=%s",
                    profile.id,
                    profile.tenant_id,
                    patient.id,
                )

        return ReconcileResult(
            profile=profile,
            patient=patient,
            created_profile=created_profile,
            created_patient=created_patient,
        )
