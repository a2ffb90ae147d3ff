# recovery_core/protocols/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from recovery_core.common.api.params import parse_optional_uuid, pk_or_404
from recovery_core.common.permissions import ProtocolPermission
from recovery_core.iam.scope import get_tenant_context
from recovery_core.protocols.api.serializers import (
    AssignRequestSerializer,
    AssignResponseSerializer,
    AutoAssignRequestSerializer,
    PatientProtocolSerializer,
    ProtocolCreateSerializer,
    ProtocolDetailSerializer,
    ProtocolSerializer,
    ProtocolTaskCreateSerializer,
    ProtocolTaskSerializer,
    ProtocolUpdateSerializer,
    RematerializeResponseSerializer,
)
from recovery_core.protocols.models import PatientProtocol, Protocol
from recovery_core.protocols.selectors import get_assignment, get_protocol, list_assignments, list_protocols
from recovery_core.protocols.services import AssignmentResult, AssignmentService, ProtocolService


def _bool_param(value) -> bool | None:
    if value is None or value == "":
        return None
    return str(value).lower() in {"1", "true", "yes"}


def _assign_payload(result: AssignmentResult) -> dict:
    a = result.assignment
    return {
        "assignment_id": str(a.id),
        "protocol_id": str(a.protocol_id),
        "patient_id": str(a.patient_id),
        "start_date": a.start_date,
        "tasks_created": result.tasks_created,
    }


@extend_schema_view(
    list=extend_schema(
        tags=["Protocols"],
        responses={200: ProtocolSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="surgery_type", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="is_active", location=OpenApiParameter.QUERY, required=False, type=bool),
            OpenApiParameter(name="is_template", location=OpenApiParameter.QUERY, required=False, type=bool),
        ],
    ),
    create=extend_schema(tags=["Protocols"], request=ProtocolCreateSerializer, responses={201: ProtocolDetailSerializer}),
    retrieve=extend_schema(tags=["Protocols"], responses={200: ProtocolDetailSerializer}),
    partial_update=extend_schema(tags=["Protocols"], request=ProtocolUpdateSerializer, responses={200: ProtocolSerializer}),
    tasks=extend_schema(tags=["Protocols"], request=ProtocolTaskCreateSerializer, responses={200: ProtocolTaskSerializer(many=True)}),
    assign=extend_schema(tags=["Protocols"], request=AssignRequestSerializer, responses={201: AssignResponseSerializer}),
    auto_assign=extend_schema(tags=["Protocols"], request=AutoAssignRequestSerializer, responses={201: AssignResponseSerializer}),
)
class ProtocolViewSet(viewsets.ViewSet):
    """
    Protocol templates of the caller's tenant, plus the assign entry points.
    """
    permission_classes = [ProtocolPermission]

    serializer_class = ProtocolSerializer
    queryset = Protocol.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)
        qs = list_protocols(
            ctx=ctx,
            surgery_type=request.query_params.get("surgery_type") or None,
            is_active=_bool_param(request.query_params.get("is_active")),
            is_template=_bool_param(request.query_params.get("is_template")),
        )
        return Response(ProtocolSerializer(qs[:200], many=True).data, status=status.HTTP_200_OK)

    def create(self, request):
        ctx = get_tenant_context(request)

        ser = ProtocolCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        protocol = ProtocolService.create_protocol(
            tenant_id=ctx.tenant_id,
            actor_user_id=ctx.user_id,
            tasks=[dict(t) for t in data.pop("tasks", [])],
            **data,
        )
        return Response(ProtocolDetailSerializer(protocol).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        ctx = get_tenant_context(request)
        protocol = get_protocol(ctx=ctx, protocol_id=pk_or_404(pk, "Protocol"))
        return Response(ProtocolDetailSerializer(protocol).data, status=status.HTTP_200_OK)

    def partial_update(self, request, pk=None):
        ctx = get_tenant_context(request)
        protocol = get_protocol(ctx=ctx, protocol_id=pk_or_404(pk, "Protocol"))

        ser = ProtocolUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        protocol = ProtocolService.update_protocol(
            tenant_id=ctx.tenant_id,
            actor_user_id=ctx.user_id,
            protocol_id=protocol.id,
            data=ser.validated_data,
        )
        return Response(ProtocolSerializer(protocol).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get", "post"])
    def tasks(self, request, pk=None):
        ctx = get_tenant_context(request)
        protocol = get_protocol(ctx=ctx, protocol_id=pk_or_404(pk, "Protocol"))

        if request.method == "POST":
            ser = ProtocolTaskCreateSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            data = dict(ser.validated_data)
            if "frequency" in data:
                data["frequency"] = dict(data["frequency"])
            task = ProtocolService.add_task(protocol=protocol, **data)
            return Response(ProtocolTaskSerializer(task).data, status=status.HTTP_201_CREATED)

        qs = protocol.tasks.order_by("day_offset", "sort_order", "created_at")
        return Response(ProtocolTaskSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"])
    def assign(self, request):
        ctx = get_tenant_context(request)

        ser = AssignRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = AssignmentService.assign(
            tenant_id=ctx.tenant_id,
            protocol_id=ser.validated_data["protocol_id"],
            patient_id=ser.validated_data["patient_id"],
            start_date=ser.validated_data.get("start_date"),
            actor_user_id=ctx.user_id,
        )
        return Response(_assign_payload(result), status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="auto-assign")
    def auto_assign(self, request):
        ctx = get_tenant_context(request)

        ser = AutoAssignRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = AssignmentService.auto_assign(
            tenant_id=ctx.tenant_id,
            patient_id=ser.validated_data["patient_id"],
            actor_user_id=ctx.user_id,
        )
        return Response(_assign_payload(result), status=status.HTTP_201_CREATED)


@extend_schema_view(
    list=extend_schema(
        tags=["Protocols"],
        responses={200: PatientProtocolSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
    retrieve=extend_schema(tags=["Protocols"], responses={200: PatientProtocolSerializer}),
    rematerialize=extend_schema(tags=["Protocols"], request=None, responses={200: RematerializeResponseSerializer}),
    complete=extend_schema(tags=["Protocols"], request=None, responses={200: PatientProtocolSerializer}),
    cancel=extend_schema(tags=["Protocols"], request=None, responses={200: PatientProtocolSerializer}),
)
class AssignmentViewSet(viewsets.ViewSet):
    permission_classes = [ProtocolPermission]

    serializer_class = PatientProtocolSerializer
    queryset = PatientProtocol.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)
        qs = list_assignments(
            ctx=ctx,
            patient_id=parse_optional_uuid(request.query_params.get("patient_id"), "patient_id"),
            status=request.query_params.get("status") or None,
        )
        return Response(PatientProtocolSerializer(qs[:200], many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        ctx = get_tenant_context(request)
        assignment = get_assignment(ctx=ctx, assignment_id=pk_or_404(pk, "Assignment"))
        return Response(PatientProtocolSerializer(assignment).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def rematerialize(self, request, pk=None):
        ctx = get_tenant_context(request)
        result = AssignmentService.rematerialize(
            tenant_id=ctx.tenant_id,
            assignment_id=pk_or_404(pk, "Assignment"),
            actor_user_id=ctx.user_id,
        )
        return Response(
            {
                "assignment_id": str(result.assignment.id),
                "tasks_created": result.tasks_created,
                "tasks_removed": result.tasks_removed,
                "tasks_preserved": result.tasks_preserved,
                "forms_relinked": result.forms_relinked,
            },
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        ctx = get_tenant_context(request)
        assignment = AssignmentService.complete_assignment(
            tenant_id=ctx.tenant_id,
            assignment_id=pk_or_404(pk, "Assignment"),
            actor_user_id=ctx.user_id,
        )
        return Response(PatientProtocolSerializer(assignment).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        ctx = get_tenant_context(request)
        assignment = AssignmentService.cancel_assignment(
            tenant_id=ctx.tenant_id,
            assignment_id=pk_or_404(pk, "Assignment"),
            actor_user_id=ctx.user_id,
        )
        return Response(PatientProtocolSerializer(assignment).data, status=status.HTTP_200_OK)
