# recovery_core/forms/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Count, QuerySet
from rest_framework.exceptions import NotFound

from recovery_core.forms.models import FormTemplate, PatientForm
from recovery_core.iam.scope import TenantContext, tenant_filter


def list_templates(*, ctx: TenantContext, is_active: bool | None = None, q: str | None = None) -> QuerySet[FormTemplate]:
    qs = tenant_filter(FormTemplate.objects.all(), ctx).annotate(section_count=Count("sections", distinct=True))
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if q:
        qs = qs.filter(name__icontains=q)
    return qs.order_by("name", "-created_at")


def get_template(*, ctx: TenantContext, template_id: UUID) -> FormTemplate:
    return tenant_filter(FormTemplate.objects.all(), ctx).get(id=template_id)


def patient_form_qs(*, ctx: TenantContext) -> QuerySet[PatientForm]:
    """
    Tenant-scoped instances; patients only ever see their own.
    """
    qs = tenant_filter(PatientForm.objects.select_related("template", "patient"), ctx)
    if ctx.is_patient:
        qs = qs.filter(patient__profile_id=ctx.profile_id)
    return qs


def list_patient_forms(
    *,
    ctx: TenantContext,
    patient_id: UUID | None = None,
    status: str | None = None,
    template_id: UUID | None = None,
) -> QuerySet[PatientForm]:
    qs = patient_form_qs(ctx=ctx)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)
    if template_id:
        qs = qs.filter(template_id=template_id)
    return qs.order_by("-assigned_date", "-created_at")


def get_patient_form(*, ctx: TenantContext, patient_form_id: UUID) -> PatientForm:
    form = patient_form_qs(ctx=ctx).filter(id=patient_form_id).first()
    if form is None:
        raise NotFound("Form not found.")
    return form
