from __future__ import annotations

from django.db.models import QuerySet

from recovery_core.alerts.models import ClinicalAlert
from recovery_core.iam.scope import TenantContext, tenant_filter


def alerts_qs(*, ctx: TenantContext) -> QuerySet[ClinicalAlert]:
    return tenant_filter(ClinicalAlert.objects.all(), ctx)
