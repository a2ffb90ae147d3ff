# recovery_core/tasks/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from recovery_core.common.api.params import parse_int, parse_optional_uuid, pk_or_404
from recovery_core.common.permissions import TaskPermission
from recovery_core.iam.scope import get_tenant_context
from recovery_core.patients.selectors import patient_for_caller
from recovery_core.tasks.api.serializers import PatientTaskSerializer, TaskCompleteSerializer
from recovery_core.tasks.models import PatientTask
from recovery_core.tasks.selectors import get_task, list_tasks, tasks_for_day
from recovery_core.tasks.services import TaskService


@extend_schema_view(
    list=extend_schema(
        tags=["Tasks"],
        responses={200: PatientTaskSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="assignment_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="task_type", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="due_after", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="due_before", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="overdue", location=OpenApiParameter.QUERY, required=False, type=bool),
            OpenApiParameter(name="ordering", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(
                name="day",
                location=OpenApiParameter.QUERY,
                required=False,
                type=int,
                description="Recovery day (negative = pre-op); needs patient_id for staff.",
            ),
        ],
    ),
    retrieve=extend_schema(tags=["Tasks"], responses={200: PatientTaskSerializer}),
    start=extend_schema(tags=["Tasks"], request=None, responses={200: PatientTaskSerializer}),
    complete=extend_schema(tags=["Tasks"], request=TaskCompleteSerializer, responses={200: PatientTaskSerializer}),
)
class TaskViewSet(viewsets.ViewSet):
    """
    Thin API layer over the materialized timeline:
    - reads go through selectors (tenant clause first, patients see their own tasks)
    - writes go through TaskService
    """
    permission_classes = [TaskPermission]

    serializer_class = PatientTaskSerializer
    queryset = PatientTask.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)

        day = parse_int(request.query_params.get("day"), "day")
        if day is not None:
            # one recovery day of one patient's active timeline
            patient = patient_for_caller(
                ctx=ctx,
                patient_id=parse_optional_uuid(request.query_params.get("patient_id"), "patient_id"),
            )
            qs = tasks_for_day(tenant_id=ctx.tenant_id, patient_id=patient.id, day=day)
        else:
            qs = list_tasks(ctx=ctx, params=request.query_params)[:300]
        return Response(PatientTaskSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        ctx = get_tenant_context(request)
        task = get_task(ctx=ctx, task_id=pk_or_404(pk, "Task"))
        return Response(PatientTaskSerializer(task).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        ctx = get_tenant_context(request)
        task = get_task(ctx=ctx, task_id=pk_or_404(pk, "Task"))

        task = TaskService.start_task(tenant_id=ctx.tenant_id, task_id=task.id, actor_user_id=ctx.user_id)
        return Response(PatientTaskSerializer(task).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        ctx = get_tenant_context(request)
        task = get_task(ctx=ctx, task_id=pk_or_404(pk, "Task"))

        ser = TaskCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        task = TaskService.complete_task(
            tenant_id=ctx.tenant_id,
            task_id=task.id,
            completion_data=ser.validated_data.get("completion_data") or {},
            actor_user_id=ctx.user_id,
        )
        return Response(PatientTaskSerializer(task).data, status=status.HTTP_200_OK)
