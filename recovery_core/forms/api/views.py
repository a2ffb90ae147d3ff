# recovery_core/forms/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from recovery_core.alerts.api.serializers import ClinicalAlertSerializer
from recovery_core.common.api.pagination import paginate
from recovery_core.common.api.params import parse_int, parse_iso_date, parse_optional_uuid, pk_or_404
from recovery_core.common.dates import utc_today
from recovery_core.common.permissions import FormSubmissionPermission, FormTemplatePermission
from recovery_core.forms.api.serializers import (
    FormResponseSerializer,
    FormTemplateCreateSerializer,
    FormTemplateSerializer,
    NextStepSerializer,
    PatientFormSerializer,
    ProtocolFormCreateSerializer,
    ProtocolFormStatusSerializer,
    SubmitBatchResultSerializer,
    SubmitBatchSerializer,
    SubmitResponseResultSerializer,
    SubmitResponseSerializer,
)
from recovery_core.forms.extraction import FormExtractionService, create_chat_prompt
from recovery_core.forms.models import FormTemplate, PatientForm
from recovery_core.forms.selectors import get_patient_form, get_template, list_patient_forms, list_templates
from recovery_core.forms.services import FormResponseService, FormTemplateService, PatientFormService
from recovery_core.iam.scope import get_tenant_context
from recovery_core.patients.selectors import patient_for_caller
from recovery_core.protocols.selectors import get_protocol


@extend_schema_view(
    post=extend_schema(tags=["Forms"], request=SubmitResponseSerializer, responses={201: SubmitResponseResultSerializer}),
    put=extend_schema(tags=["Forms"], request=SubmitBatchSerializer, responses={200: SubmitBatchResultSerializer}),
)
class FormSubmitView(APIView):
    """
    POST: one answer. PUT: several answers for the same form instance,
    saved in order; failures are reported per item.
    """
    permission_classes = [FormSubmissionPermission]

    def post(self, request):
        ctx = get_tenant_context(request)

        ser = SubmitResponseSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        form = get_patient_form(ctx=ctx, patient_form_id=data["patient_form_id"])
        result = FormResponseService.save_response(
            tenant_id=ctx.tenant_id,
            patient_form_id=form.id,
            question_id=data["question_id"],
            response=data["response"],
            response_method=data["response_method"],
            time_to_respond=data.get("time_to_respond"),
            actor_user_id=ctx.user_id,
        )
        payload = {
            "success": True,
            "response": FormResponseSerializer(result.response).data,
            "alerts": ClinicalAlertSerializer(result.alerts, many=True).data,
            "completion_status": result.completion_status.as_dict(),
        }
        return Response(payload, status=status.HTTP_201_CREATED)

    def put(self, request):
        ctx = get_tenant_context(request)

        ser = SubmitBatchSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        form = get_patient_form(ctx=ctx, patient_form_id=ser.validated_data["patient_form_id"])
        result = FormResponseService.save_batch(
            tenant_id=ctx.tenant_id,
            patient_form_id=form.id,
            items=ser.validated_data["responses"],
            actor_user_id=ctx.user_id,
        )
        payload = {
            "success": result.failed == 0,
            "results": [r.as_dict() for r in result.results],
            "alerts": ClinicalAlertSerializer(result.alerts, many=True).data,
            "completion_status": result.completion_status.as_dict(),
        }
        return Response(payload, status=status.HTTP_200_OK)


@extend_schema_view(
    get=extend_schema(
        tags=["Forms"],
        parameters=[
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="protocol_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="day", location=OpenApiParameter.QUERY, required=False, type=int),
            OpenApiParameter(name="date", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
    post=extend_schema(tags=["Forms"], request=ProtocolFormCreateSerializer, responses={201: PatientFormSerializer}),
    patch=extend_schema(tags=["Forms"], request=ProtocolFormStatusSerializer, responses={200: PatientFormSerializer}),
)
class ProtocolFormsView(APIView):
    """
    GET with protocol_id and day: the form tasks shown on that recovery day.
    GET otherwise: the patient's schedule (today, next 7 days, completed).
    POST issues a form instance, PATCH sets its status.
    """
    permission_classes = [FormSubmissionPermission]

    def get(self, request):
        ctx = get_tenant_context(request)
        params = request.query_params

        protocol_id = parse_optional_uuid(params.get("protocol_id"), "protocol_id")
        day = parse_int(params.get("day"), "day")

        if protocol_id is not None and day is not None:
            protocol = get_protocol(ctx=ctx, protocol_id=protocol_id)
            tasks = PatientFormService.forms_for_day(protocol=protocol, day=day)
            forms = [
                {
                    "protocol_task_id": str(t.id),
                    "template_id": str(t.form_template_id),
                    "template_name": t.form_template.name,
                    "title": t.title,
                    "is_required": t.is_required,
                    "day": day,
                }
                for t in tasks
            ]
            return Response({"protocol_id": str(protocol.id), "day": day, "forms": forms}, status=status.HTTP_200_OK)

        patient = patient_for_caller(ctx=ctx, patient_id=parse_optional_uuid(params.get("patient_id"), "patient_id"))
        today = parse_iso_date(params.get("date"), "date") or utc_today()
        data = PatientFormService.patient_protocol_forms(tenant_id=ctx.tenant_id, patient_id=patient.id, today=today)
        return Response({"patient_id": str(patient.id), **data}, status=status.HTTP_200_OK)

    def post(self, request):
        ctx = get_tenant_context(request)

        ser = ProtocolFormCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        patient = patient_for_caller(ctx=ctx, patient_id=data.get("patient_id"))
        form, created = PatientFormService.create_instance(
            tenant_id=ctx.tenant_id,
            patient_id=patient.id,
            template_id=data.get("template_id"),
            protocol_task_id=data.get("protocol_task_id"),
            assigned_date=data.get("assigned_date"),
            due_date=data.get("due_date"),
            actor_user_id=ctx.user_id,
        )
        return Response(
            PatientFormSerializer(form).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    def patch(self, request):
        ctx = get_tenant_context(request)

        ser = ProtocolFormStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        form = get_patient_form(ctx=ctx, patient_form_id=ser.validated_data["patient_form_id"])
        form = PatientFormService.update_status(
            tenant_id=ctx.tenant_id,
            patient_form_id=form.id,
            status=ser.validated_data["status"],
            actor_user_id=ctx.user_id,
        )
        return Response(PatientFormSerializer(form).data, status=status.HTTP_200_OK)


@extend_schema_view(
    list=extend_schema(tags=["Forms"], responses={200: FormTemplateSerializer(many=True)}),
    retrieve=extend_schema(tags=["Forms"], responses={200: FormTemplateSerializer}),
    create=extend_schema(tags=["Forms"], request=FormTemplateCreateSerializer, responses={201: FormTemplateSerializer}),
    flow=extend_schema(tags=["Forms"], responses={200: OpenApiTypes.OBJECT}),
)
class FormTemplateViewSet(viewsets.ViewSet):
    permission_classes = [FormTemplatePermission]

    serializer_class = FormTemplateSerializer
    queryset = FormTemplate.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)
        is_active = request.query_params.get("is_active")
        qs = list_templates(
            ctx=ctx,
            is_active=None if is_active in (None, "") else is_active.lower() in {"1", "true", "yes"},
            q=request.query_params.get("q") or None,
        )
        return paginate(request, qs, FormTemplateSerializer)

    def retrieve(self, request, pk=None):
        ctx = get_tenant_context(request)
        template = get_template(ctx=ctx, template_id=pk_or_404(pk, "Form template"))
        return Response(FormTemplateSerializer(template).data, status=status.HTTP_200_OK)

    def create(self, request):
        ctx = get_tenant_context(request)

        ser = FormTemplateCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        template = FormTemplateService.create_template(
            tenant_id=ctx.tenant_id,
            name=data["name"],
            description=data.get("description", ""),
            is_active=data.get("is_active", True),
            sections=[
                {**dict(s), "questions": [dict(q) for q in s.get("questions", [])]}
                for s in data.get("sections", [])
            ],
            actor_user_id=ctx.user_id,
        )
        return Response(FormTemplateSerializer(template).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def flow(self, request, pk=None):
        ctx = get_tenant_context(request)
        flow = FormExtractionService.extract(tenant_id=ctx.tenant_id, template_id=pk_or_404(pk, "Form template"))

        payload = flow.as_dict()
        for step_dict, step in zip(payload["steps"], flow.steps):
            step_dict["prompt"] = create_chat_prompt(step)
        return Response(payload, status=status.HTTP_200_OK)


@extend_schema_view(
    list=extend_schema(
        tags=["Forms"],
        responses={200: PatientFormSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="template_id", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
    retrieve=extend_schema(tags=["Forms"], responses={200: PatientFormSerializer}),
    responses=extend_schema(
        tags=["Forms"],
        responses={200: FormResponseSerializer(many=True)},
        parameters=[OpenApiParameter(name="history", location=OpenApiParameter.QUERY, required=False, type=bool)],
    ),
    next_step=extend_schema(tags=["Forms"], responses={200: NextStepSerializer}),
    next_pending=extend_schema(
        tags=["Forms"],
        responses={200: OpenApiTypes.OBJECT},
        parameters=[OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str)],
    ),
)
class PatientFormViewSet(viewsets.ViewSet):
    permission_classes = [FormSubmissionPermission]

    serializer_class = PatientFormSerializer
    queryset = PatientForm.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)
        qs = list_patient_forms(
            ctx=ctx,
            patient_id=parse_optional_uuid(request.query_params.get("patient_id"), "patient_id"),
            status=request.query_params.get("status") or None,
            template_id=parse_optional_uuid(request.query_params.get("template_id"), "template_id"),
        )
        return paginate(request, qs, PatientFormSerializer)

    def retrieve(self, request, pk=None):
        ctx = get_tenant_context(request)
        form = get_patient_form(ctx=ctx, patient_form_id=pk_or_404(pk, "Form"))

        data = PatientFormSerializer(form).data
        data["completion_status"] = FormResponseService.completion_status(form).as_dict()
        return Response(data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def responses(self, request, pk=None):
        ctx = get_tenant_context(request)
        form = get_patient_form(ctx=ctx, patient_form_id=pk_or_404(pk, "Form"))

        if str(request.query_params.get("history", "")).lower() in {"1", "true", "yes"}:
            rows = list(form.responses.order_by("created_at"))
        else:
            rows = list(FormResponseService.latest_responses(form).values())
        return Response(FormResponseSerializer(rows, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="next-step")
    def next_step(self, request, pk=None):
        ctx = get_tenant_context(request)
        form = get_patient_form(ctx=ctx, patient_form_id=pk_or_404(pk, "Form"))

        flow = FormExtractionService.extract(tenant_id=ctx.tenant_id, template_id=form.template_id)
        step = FormResponseService.next_step(form, flow=flow)
        completion = FormResponseService.completion_status(form, flow=flow)

        payload = {
            "patient_form_id": str(form.id),
            "is_complete": step is None,
            "step": step.as_dict() if step else None,
            "prompt": create_chat_prompt(step) if step else None,
            "completion_status": completion.as_dict(),
        }
        return Response(payload, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="next")
    def next_pending(self, request):
        """The oldest form already due and not yet completed, or null."""
        ctx = get_tenant_context(request)
        patient = patient_for_caller(
            ctx=ctx,
            patient_id=parse_optional_uuid(request.query_params.get("patient_id"), "patient_id"),
        )
        form = PatientFormService.next_pending_form(tenant_id=ctx.tenant_id, patient_id=patient.id)
        return Response(
            {"patient_form": PatientFormSerializer(form).data if form else None},
            status=status.HTTP_200_OK,
        )
