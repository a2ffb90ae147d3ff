# recovery_core/iam/api/session.py

from __future__ import annotations

from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from recovery_core.common.dates import utc_today
from recovery_core.iam.api.me import context_payload, profile_payload, user_payload
from recovery_core.iam.api.schema_serializers import SessionBootstrapResponseSerializer
from recovery_core.iam.models import ProfileRole
from recovery_core.iam.routing import has_route_access, landing_path_for_profile
from recovery_core.iam.scope import get_tenant_context
from recovery_core.iam.services.reconcile import ProfileReconcileService
from recovery_core.tenants.selectors import get_tenant_or_none

API_VERSION = "0.1.0"


class SessionBootstrapView(APIView):
    """
    Frontend bootstrap endpoint, called right after login.

    - Reconciles missing Profile / Patient rows first (logged as warnings).
    - Resolves the tenant context (X-Tenant-Id honored for privileged roles).
    - Returns the role landing path as redirect_to.
    - With ?path=..., also reports whether the role may open that route.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={200: SessionBootstrapResponseSerializer},
        tags=["IAM"],
        parameters=[
            OpenApiParameter(name="X-Tenant-Id", location=OpenApiParameter.HEADER, required=False, type=str),
            OpenApiParameter(name="path", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
    )
    def get(self, request):
        result = ProfileReconcileService.reconcile(request.user)
        profile = result.profile

        ctx = get_tenant_context(request)
        tenant = get_tenant_or_none(tenant_id=ctx.tenant_id)

        today = utc_today()
        recovery_phase = None
        if profile.role == ProfileRole.PATIENT and result.patient is not None:
            recovery_phase = result.patient.recovery_phase(today).as_dict()

        path = request.query_params.get("path")
        route_access = has_route_access(profile.role, path) if path else None

        return Response(
            {
                "user": user_payload(request.user),
                "profile": profile_payload(profile),
                "tenant_context": context_payload(ctx),
                "active_tenant": (
                    {"id": str(tenant.id), "code": tenant.code, "name": tenant.name} if tenant else None
                ),
                "redirect_to": landing_path_for_profile(profile, today=today),
                "route_access": route_access,
                "recovery_phase": recovery_phase,
                "reconciled": result.changed,
                "server_time": timezone.now(),
                "api_version": API_VERSION,
            }
        )
