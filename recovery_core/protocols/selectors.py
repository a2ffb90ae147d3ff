# recovery_core/protocols/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Count, QuerySet

from recovery_core.iam.scope import TenantContext, tenant_filter
from recovery_core.protocols.models import AssignmentStatus, PatientProtocol, Protocol


def list_protocols(
    *,
    ctx: TenantContext,
    surgery_type: str | None = None,
    is_active: bool | None = None,
    is_template: bool | None = None,
) -> QuerySet[Protocol]:
    qs = tenant_filter(Protocol.objects.all(), ctx).annotate(task_count=Count("tasks"))

    if surgery_type:
        qs = qs.filter(surgery_type=surgery_type)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if is_template is not None:
        qs = qs.filter(is_template=is_template)

    return qs.order_by("name", "-created_at")


def get_protocol(*, ctx: TenantContext, protocol_id: UUID) -> Protocol:
    return tenant_filter(Protocol.objects.all(), ctx).get(id=protocol_id)


def list_assignments(
    *,
    ctx: TenantContext,
    patient_id: UUID | None = None,
    status: str | None = None,
) -> QuerySet[PatientProtocol]:
    qs = tenant_filter(PatientProtocol.objects.select_related("protocol", "patient"), ctx)

    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)

    return qs.order_by("-created_at")


def get_assignment(*, ctx: TenantContext, assignment_id: UUID) -> PatientProtocol:
    return tenant_filter(PatientProtocol.objects.select_related("protocol", "patient"), ctx).get(id=assignment_id)


def active_assignment_for_patient(*, tenant_id: UUID, patient_id: UUID) -> PatientProtocol | None:
    return (
        PatientProtocol.objects.select_related("protocol")
        .filter(tenant_id=tenant_id, patient_id=patient_id, status=AssignmentStatus.ACTIVE)
        .first()
    )
