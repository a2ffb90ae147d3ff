# recovery_core/tasks/selectors.py
from __future__ import annotations

from typing import Any
from uuid import UUID

import django_filters
from django.db.models import QuerySet
from rest_framework.exceptions import ValidationError

from recovery_core.common.dates import utc_today
from recovery_core.iam.scope import TenantContext, tenant_filter
from recovery_core.protocols.models import AssignmentStatus, TaskType
from recovery_core.tasks.models import PatientTask, TaskStatus


class PatientTaskFilter(django_filters.FilterSet):
    """
    Query params:
      - patient_id, assignment_id
      - status, task_type
      - due_after / due_before (YYYY-MM-DD, inclusive)
      - overdue=true|false
      - ordering in {due_date, -due_date, created_at, -created_at}
    """
    patient_id = django_filters.UUIDFilter(field_name="patient_id")
    assignment_id = django_filters.UUIDFilter(field_name="assignment_id")
    status = django_filters.ChoiceFilter(choices=TaskStatus.choices)
    task_type = django_filters.ChoiceFilter(choices=TaskType.choices)
    due_after = django_filters.DateFilter(field_name="due_date", lookup_expr="gte")
    due_before = django_filters.DateFilter(field_name="due_date", lookup_expr="lte")
    overdue = django_filters.BooleanFilter(method="filter_overdue")
    ordering = django_filters.OrderingFilter(fields=("due_date", "created_at"))

    class Meta:
        model = PatientTask
        fields = ["patient_id", "assignment_id", "status", "task_type"]

    def filter_overdue(self, queryset, name, value):
        overdue = queryset.filter(due_date__lt=utc_today()).exclude(status=TaskStatus.COMPLETED)
        if value:
            return overdue
        return queryset.exclude(id__in=overdue.values("id"))


def task_qs(*, ctx: TenantContext) -> QuerySet[PatientTask]:
    qs = tenant_filter(PatientTask.objects.select_related("patient"), ctx)
    if ctx.is_patient:
        qs = qs.filter(patient__profile_id=ctx.profile_id)
    return qs


def get_task(*, ctx: TenantContext, task_id: UUID) -> PatientTask:
    return task_qs(ctx=ctx).get(id=task_id)


def list_tasks(*, ctx: TenantContext, params: Any) -> QuerySet[PatientTask]:
    # tenant clause is applied before the caller's filters, which can only narrow it
    filterset = PatientTaskFilter(params, queryset=task_qs(ctx=ctx))
    if not filterset.is_valid():
        raise ValidationError(filterset.errors)

    qs = filterset.qs
    if not params.get("ordering"):
        qs = qs.order_by("due_date", "day_offset", "created_at")
    return qs


def tasks_for_day(*, tenant_id: UUID, patient_id: UUID, day: int) -> QuerySet[PatientTask]:
    """
    Tasks of the patient's active assignment positioned on recovery day `day`
    (relative to the assignment anchor, negative = pre-op).
    """
    return PatientTask.objects.filter(
        tenant_id=tenant_id,
        patient_id=patient_id,
        assignment__status=AssignmentStatus.ACTIVE,
        day_offset=day,
    ).order_by("protocol_task__sort_order", "created_at")
