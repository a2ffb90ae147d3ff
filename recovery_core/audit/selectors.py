# recovery_core/audit/selectors.py
from __future__ import annotations

from typing import Any

import django_filters
from django.db.models import QuerySet
from rest_framework.exceptions import ValidationError

from recovery_core.audit.models import AuditEvent
from recovery_core.iam.scope import TenantContext, tenant_filter


class AuditEventFilter(django_filters.FilterSet):
    """
    Query params:
      - action (exact) / action_prefix ("protocol." for the whole family)
      - resource_type, resource_id, actor_user_id
      - patient_id: events whose metadata names the patient
      - since / until (ISO datetimes, inclusive)
    """
    action = django_filters.CharFilter(field_name="action")
    action_prefix = django_filters.CharFilter(field_name="action", lookup_expr="startswith")
    resource_type = django_filters.CharFilter(field_name="resource_type")
    resource_id = django_filters.CharFilter(field_name="resource_id")
    actor_user_id = django_filters.NumberFilter(field_name="actor_user_id")
    patient_id = django_filters.UUIDFilter(method="filter_patient")
    since = django_filters.IsoDateTimeFilter(field_name="occurred_at", lookup_expr="gte")
    until = django_filters.IsoDateTimeFilter(field_name="occurred_at", lookup_expr="lte")

    class Meta:
        model = AuditEvent
        fields = ["action", "resource_type", "resource_id"]

    def filter_patient(self, queryset, name, value):
        return queryset.filter(metadata__patient_id=str(value))


def list_audit_events(*, ctx: TenantContext, params: Any) -> QuerySet[AuditEvent]:
    filterset = AuditEventFilter(params, queryset=tenant_filter(AuditEvent.objects.all(), ctx))
    if not filterset.is_valid():
        raise ValidationError(filterset.errors)
    return filterset.qs.order_by("-occurred_at", "-created_at")
