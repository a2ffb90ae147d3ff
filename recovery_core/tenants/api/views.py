# recovery_core/tenants/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from recovery_core.common.api.pagination import paginate
from recovery_core.common.api.params import pk_or_404
from recovery_core.common.permissions import PrivilegedOnlyPermission
from recovery_core.iam.scope import get_tenant_context
from recovery_core.tenants.api.serializers import (
    TenantCreateSerializer,
    TenantSerializer,
    TenantSettingsSerializer,
    TenantStatsSerializer,
    TenantStatusSerializer,
)
from recovery_core.tenants.models import Tenant
from recovery_core.tenants.selectors import list_tenants, tenant_stats
from recovery_core.tenants.services import TenantService


@extend_schema_view(
    list=extend_schema(
        tags=["Tenants"],
        responses={200: TenantSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="search", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
    retrieve=extend_schema(tags=["Tenants"], responses={200: TenantSerializer}),
    create=extend_schema(tags=["Tenants"], request=TenantCreateSerializer, responses={201: TenantSerializer}),
    set_status=extend_schema(tags=["Tenants"], request=TenantStatusSerializer, responses={200: TenantSerializer}),
    update_settings=extend_schema(tags=["Tenants"], request=TenantSettingsSerializer, responses={200: TenantSerializer}),
    stats=extend_schema(tags=["Tenants"], responses={200: TenantStatsSerializer}),
)
class TenantViewSet(viewsets.ViewSet):
    """
    Practice management across tenants (saas_admin / super_admin).
    """

    permission_classes = [PrivilegedOnlyPermission]

    serializer_class = TenantSerializer
    queryset = Tenant.objects.none()

    def _get(self, pk) -> Tenant:
        return Tenant.objects.get(id=pk_or_404(pk, "Tenant"))

    def list(self, request):
        qs = list_tenants(
            search=(request.query_params.get("search") or "").strip() or None,
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, TenantSerializer)

    def retrieve(self, request, pk=None):
        return Response(TenantSerializer(self._get(pk)).data, status=status.HTTP_200_OK)

    def create(self, request):
        ser = TenantCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        tenant = TenantService.create(**ser.validated_data, actor_user_id=get_tenant_context(request).user_id)
        return Response(TenantSerializer(tenant).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="set-status")
    def set_status(self, request, pk=None):
        ser = TenantStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        tenant = TenantService.set_status(
            tenant_id=self._get(pk).id,
            status=ser.validated_data["status"],
            actor_user_id=get_tenant_context(request).user_id,
        )
        return Response(TenantSerializer(tenant).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["patch"], url_path="settings")
    def update_settings(self, request, pk=None):
        ser = TenantSettingsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        tenant = TenantService.update_settings(
            tenant_id=self._get(pk).id,
            changes=ser.validated_data["settings"],
            actor_user_id=get_tenant_context(request).user_id,
        )
        return Response(TenantSerializer(tenant).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def stats(self, request, pk=None):
        return Response(tenant_stats(tenant_id=self._get(pk).id), status=status.HTTP_200_OK)
