# recovery_core/conversations/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from recovery_core.alerts.api.serializers import ClinicalAlertSerializer
from recovery_core.common.api.pagination import TrailPagination, paginate
from recovery_core.common.api.params import parse_optional_uuid, pk_or_404
from recovery_core.common.permissions import ConversationPermission
from recovery_core.conversations.api.serializers import (
    AnswerResultSerializer,
    AnswerSerializer,
    ConversationCreateSerializer,
    ConversationSerializer,
    MessageCreateSerializer,
    MessageSerializer,
)
from recovery_core.conversations.models import Conversation, SenderType
from recovery_core.conversations.selectors import get_conversation, list_conversations
from recovery_core.conversations.services import ConversationService
from recovery_core.iam.scope import get_tenant_context
from recovery_core.patients.selectors import patient_for_caller


@extend_schema_view(
    list=extend_schema(
        tags=["Conversations"],
        responses={200: ConversationSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
    create=extend_schema(tags=["Conversations"], request=ConversationCreateSerializer, responses={201: ConversationSerializer}),
    retrieve=extend_schema(tags=["Conversations"], responses={200: ConversationSerializer}),
    messages=extend_schema(tags=["Conversations"], request=MessageCreateSerializer, responses={200: MessageSerializer(many=True)}),
    answer=extend_schema(tags=["Conversations"], request=AnswerSerializer, responses={200: AnswerResultSerializer}),
    close=extend_schema(tags=["Conversations"], request=None, responses={200: ConversationSerializer}),
)
class ConversationViewSet(viewsets.ViewSet):
    permission_classes = [ConversationPermission]

    serializer_class = ConversationSerializer
    queryset = Conversation.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)
        qs = list_conversations(
            ctx=ctx,
            patient_id=parse_optional_uuid(request.query_params.get("patient_id"), "patient_id"),
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, ConversationSerializer)

    def create(self, request):
        ctx = get_tenant_context(request)

        ser = ConversationCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        patient = patient_for_caller(ctx=ctx, patient_id=data.get("patient_id"))
        conversation = ConversationService.start(
            tenant_id=ctx.tenant_id,
            patient_id=patient.id,
            patient_form_id=data.get("patient_form_id"),
            title=data.get("title", ""),
            actor_user_id=ctx.user_id,
        )
        return Response(ConversationSerializer(conversation).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        ctx = get_tenant_context(request)
        conversation = get_conversation(ctx=ctx, conversation_id=pk_or_404(pk, "Conversation"))
        return Response(ConversationSerializer(conversation).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        ctx = get_tenant_context(request)
        conversation = get_conversation(ctx=ctx, conversation_id=pk_or_404(pk, "Conversation"))

        if request.method == "POST":
            ser = MessageCreateSerializer(data=request.data)
            ser.is_valid(raise_exception=True)

            message = ConversationService.post_message(
                tenant_id=ctx.tenant_id,
                conversation_id=conversation.id,
                sender_type=SenderType.PATIENT if ctx.is_patient else SenderType.NURSE,
                content=ser.validated_data["content"],
                sender_user_id=ctx.user_id,
                metadata=ser.validated_data.get("metadata"),
            )
            return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)

        return paginate(
            request,
            conversation.messages.order_by("created_at"),
            MessageSerializer,
            pagination_class=TrailPagination,
        )

    @action(detail=True, methods=["post"])
    def answer(self, request, pk=None):
        ctx = get_tenant_context(request)
        conversation = get_conversation(ctx=ctx, conversation_id=pk_or_404(pk, "Conversation"))

        ser = AnswerSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = ConversationService.answer_current_question(
            tenant_id=ctx.tenant_id,
            conversation_id=conversation.id,
            content=ser.validated_data["content"],
            response_method=ser.validated_data["response_method"],
            time_to_respond=ser.validated_data.get("time_to_respond"),
            actor_user_id=ctx.user_id,
        )
        payload = {
            "accepted": result.accepted,
            "error": result.error,
            "patient_message": MessageSerializer(result.patient_message).data,
            "reply": MessageSerializer(result.reply).data if result.reply else None,
            "alerts": ClinicalAlertSerializer(result.saved.alerts, many=True).data if result.saved else [],
            "completion_status": result.saved.completion_status.as_dict() if result.saved else None,
        }
        return Response(payload, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        ctx = get_tenant_context(request)
        conversation = get_conversation(ctx=ctx, conversation_id=pk_or_404(pk, "Conversation"))
        conversation = ConversationService.close(
            tenant_id=ctx.tenant_id,
            conversation_id=conversation.id,
            actor_user_id=ctx.user_id,
        )
        return Response(ConversationSerializer(conversation).data, status=status.HTTP_200_OK)
