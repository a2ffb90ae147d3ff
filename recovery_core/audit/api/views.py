# recovery_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import viewsets

from recovery_core.audit.api.serializers import AuditEventSerializer
from recovery_core.audit.models import AuditEvent
from recovery_core.audit.selectors import list_audit_events
from recovery_core.common.api.pagination import TrailPagination, paginate
from recovery_core.common.permissions import AuditPermission
from recovery_core.iam.scope import get_tenant_context


@extend_schema_view(
    list=extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="action", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(
                name="action_prefix",
                location=OpenApiParameter.QUERY,
                required=False,
                type=str,
                description="e.g. 'form.' for every form event.",
            ),
            OpenApiParameter(name="resource_type", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="resource_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="actor_user_id", location=OpenApiParameter.QUERY, required=False, type=int),
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="since", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="until", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    ),
)
class AuditEventViewSet(viewsets.ViewSet):
    """
    The tenant's audit trail, newest first. Admin roles only.
    """
    permission_classes = [AuditPermission]

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    def list(self, request):
        ctx = get_tenant_context(request)
        qs = list_audit_events(ctx=ctx, params=request.query_params)
        return paginate(request, qs, AuditEventSerializer, pagination_class=TrailPagination)
