# recovery_core/patients/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Q, QuerySet
from rest_framework.exceptions import NotFound, ValidationError

from recovery_core.iam.scope import TenantContext, tenant_filter
from recovery_core.patients.models import Patient


def patient_qs(*, ctx: TenantContext) -> QuerySet[Patient]:
    """
    Every patient read starts here: tenant clause first, then the
    patient-role narrowing to the caller's own record.
    """
    qs = tenant_filter(Patient.objects.all(), ctx)
    if ctx.is_patient:
        qs = qs.filter(profile_id=ctx.profile_id)
    return qs


def get_patient(*, ctx: TenantContext, patient_id: UUID) -> Patient:
    return patient_qs(ctx=ctx).get(id=patient_id)


def get_patient_for_profile(*, ctx: TenantContext) -> Patient | None:
    return tenant_filter(Patient.objects.all(), ctx).filter(profile_id=ctx.profile_id).first()


def search_patients(
    *,
    ctx: TenantContext,
    q: str | None = None,
    status: str | None = None,
    surgery_type: str | None = None,
) -> QuerySet[Patient]:
    qs = patient_qs(ctx=ctx)

    qv = (q or "").strip()
    if qv:
        qs = qs.filter(
            Q(first_name__icontains=qv)
            | Q(last_name__icontains=qv)
            | Q(mrn__icontains=qv)
            | Q(phone__icontains=qv)
            | Q(email__icontains=qv)
        )
    if status:
        qs = qs.filter(status=status)
    if surgery_type:
        qs = qs.filter(surgery_type=surgery_type)

    return qs.order_by("-created_at")


def patient_for_caller(*, ctx: TenantContext, patient_id: UUID | None) -> Patient:
    """
    Patients act on their own record only (any other id is a 404);
    staff must name the patient.
    """
    if ctx.is_patient:
        patient = get_patient_for_profile(ctx=ctx)
        if patient is None or (patient_id is not None and patient_id != patient.id):
            raise NotFound("Patient not found.")
        return patient
    if patient_id is None:
        raise ValidationError({"patient_id": "This field is required."})
    return get_patient(ctx=ctx, patient_id=patient_id)
