from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from recovery_core.conversations.models import Conversation
from recovery_core.iam.scope import TenantContext, tenant_filter


def conversation_qs(*, ctx: TenantContext) -> QuerySet[Conversation]:
    qs = tenant_filter(Conversation.objects.select_related("patient", "patient_form"), ctx)
    if ctx.is_patient:
        qs = qs.filter(patient__profile_id=ctx.profile_id)
    return qs


def list_conversations(
    *,
    ctx: TenantContext,
    patient_id: UUID | None = None,
    status: str | None = None,
) -> QuerySet[Conversation]:
    qs = conversation_qs(ctx=ctx)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")


def get_conversation(*, ctx: TenantContext, conversation_id: UUID) -> Conversation:
    return conversation_qs(ctx=ctx).get(id=conversation_id)
