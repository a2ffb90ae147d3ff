# recovery_core/tenants/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import Q, QuerySet

from recovery_core.tenants.models import Tenant


def get_tenant_or_none(*, tenant_id: UUID) -> Optional[Tenant]:
    return Tenant.objects.filter(id=tenant_id).first()


def list_tenants(*, search: str | None = None, status: str | None = None) -> QuerySet[Tenant]:
    qs = Tenant.objects.all()
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(code__icontains=search))
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")


def tenant_stats(*, tenant_id: UUID) -> dict:
    """
    Headline counts for the practice overview screen.
    """
    from recovery_core.alerts.models import AlertStatus, ClinicalAlert
    from recovery_core.iam.models import Profile
    from recovery_core.patients.models import Patient
    from recovery_core.protocols.models import AssignmentStatus, PatientProtocol, Protocol

    protocols = Protocol.objects.filter(tenant_id=tenant_id)
    return {
        "tenant_id": str(tenant_id),
        "total_users": Profile.objects.filter(tenant_id=tenant_id).count(),
        "total_patients": Patient.objects.filter(tenant_id=tenant_id).count(),
        "total_protocols": protocols.count(),
        "active_protocols": protocols.filter(is_active=True).count(),
        "active_assignments": PatientProtocol.objects.filter(
            tenant_id=tenant_id, status=AssignmentStatus.ACTIVE
        ).count(),
        "open_alerts": ClinicalAlert.objects.filter(tenant_id=tenant_id, status=AlertStatus.OPEN).count(),
    }
