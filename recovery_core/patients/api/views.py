# recovery_core/patients/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from recovery_core.common.api.params import pk_or_404
from recovery_core.common.dates import utc_today
from recovery_core.common.permissions import PatientPermission
from recovery_core.iam.models import Profile, ProfileRole
from recovery_core.iam.scope import get_tenant_context, log_tenant_event
from recovery_core.patients.api.serializers import (
    PatientCreateSerializer,
    PatientSerializer,
    PatientUpdateSerializer,
    RecoveryPhaseSerializer,
)
from recovery_core.patients.models import Patient
from recovery_core.patients.selectors import get_patient, search_patients
from recovery_core.patients.services import PatientService


@extend_schema_view(
    list=extend_schema(
        tags=["Patients"],
        responses={200: PatientSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="q", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="surgery_type", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
    create=extend_schema(tags=["Patients"], request=PatientCreateSerializer, responses={201: PatientSerializer}),
    retrieve=extend_schema(tags=["Patients"], responses={200: PatientSerializer}),
    partial_update=extend_schema(tags=["Patients"], request=PatientUpdateSerializer, responses={200: PatientSerializer}),
    phase=extend_schema(tags=["Patients"], responses={200: RecoveryPhaseSerializer}),
)
class PatientViewSet(viewsets.ViewSet):
    """
    Patients of the caller's tenant. Patient-role callers only ever see their own record.
    """
    permission_classes = [PatientPermission]

    serializer_class = PatientSerializer
    queryset = Patient.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)

        qs = search_patients(
            ctx=ctx,
            q=request.query_params.get("q", ""),
            status=request.query_params.get("status") or None,
            surgery_type=request.query_params.get("surgery_type") or None,
        )
        return Response(PatientSerializer(qs[:200], many=True).data, status=status.HTTP_200_OK)

    def create(self, request):
        ctx = get_tenant_context(request)

        ser = PatientCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        profile_id = data.get("profile_id")
        if profile_id is not None:
            linked = Profile.objects.filter(id=profile_id, tenant_id=ctx.tenant_id, role=ProfileRole.PATIENT).exists()
            if not linked:
                raise ValidationError({"profile_id": "Unknown patient profile for this tenant."})

        patient = PatientService.create_patient(
            tenant_id=ctx.tenant_id,
            actor_user_id=ctx.user_id,
            **data,
        )
        return Response(PatientSerializer(patient).data, status=status.HTTP_201_CREATED)

    def _get_checked(self, request, pk) -> Patient:
        ctx = get_tenant_context(request)
        patient = get_patient(ctx=ctx, patient_id=pk_or_404(pk, "Patient"))
        self.check_object_permissions(request, patient)
        return patient

    def retrieve(self, request, pk=None):
        patient = self._get_checked(request, pk)
        log_tenant_event(
            get_tenant_context(request),
            action="patient.viewed",
            resource_type="Patient",
            resource_id=patient.id,
            metadata={"patient_id": str(patient.id)},
        )
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    def partial_update(self, request, pk=None):
        ctx = get_tenant_context(request)
        patient = get_patient(ctx=ctx, patient_id=pk_or_404(pk, "Patient"))

        ser = PatientUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        patient = PatientService.update_patient(
            tenant_id=ctx.tenant_id,
            actor_user_id=ctx.user_id,
            patient_id=patient.id,
            data=ser.validated_data,
        )
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def phase(self, request, pk=None):
        patient = self._get_checked(request, pk)

        result = patient.recovery_phase(utc_today())
        return Response(
            {"patient_id": str(patient.id), "surgery_date": patient.surgery_date, **result.as_dict()},
            status=status.HTTP_200_OK,
        )
