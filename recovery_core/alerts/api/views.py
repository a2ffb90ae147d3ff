# recovery_core/alerts/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from recovery_core.alerts.api.serializers import AlertResolveSerializer, ClinicalAlertSerializer
from recovery_core.alerts.selectors import alerts_qs
from recovery_core.alerts.services import AlertContext, AlertService
from recovery_core.common.api.params import parse_optional_uuid, pk_or_404
from recovery_core.common.permissions import AlertPermission
from recovery_core.iam.scope import get_tenant_context


class TenantContextMixin:
    def ctx(self) -> AlertContext:
        tc = get_tenant_context(self.request)
        return AlertContext(tenant_id=tc.tenant_id, actor_user_id=tc.user_id)


@extend_schema_view(
    list=extend_schema(
        tags=["Alerts"],
        parameters=[
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="severity", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
    retrieve=extend_schema(tags=["Alerts"]),
    ack=extend_schema(tags=["Alerts"], request=None, responses={200: ClinicalAlertSerializer}),
    resolve=extend_schema(tags=["Alerts"], request=AlertResolveSerializer, responses={200: ClinicalAlertSerializer}),
)
class AlertViewSet(TenantContextMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    permission_classes = [AlertPermission]
    serializer_class = ClinicalAlertSerializer
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def get_queryset(self):
        qs = alerts_qs(ctx=get_tenant_context(self.request))

        status_q = self.request.query_params.get("status")
        severity_q = self.request.query_params.get("severity")
        patient_id = parse_optional_uuid(self.request.query_params.get("patient_id"), "patient_id")
        if status_q:
            qs = qs.filter(status=status_q)
        if severity_q:
            qs = qs.filter(severity=severity_q)
        if patient_id:
            qs = qs.filter(patient_id=patient_id)
        return qs.order_by("-created_at")

    @action(methods=["POST"], detail=True, url_path="ack")
    def ack(self, request, pk=None):
        alert = AlertService.acknowledge(ctx=self.ctx(), alert_id=pk_or_404(pk, "Alert"))
        return Response(ClinicalAlertSerializer(alert).data, status=status.HTTP_200_OK)

    @action(methods=["POST"], detail=True, url_path="resolve")
    def resolve(self, request, pk=None):
        ser = AlertResolveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        alert = AlertService.resolve(ctx=self.ctx(), alert_id=pk_or_404(pk, "Alert"), note=ser.validated_data["note"])
        return Response(ClinicalAlertSerializer(alert).data, status=status.HTTP_200_OK)
