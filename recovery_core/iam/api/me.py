# recovery_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from recovery_core.iam.api.schema_serializers import MeResponseSerializer
from recovery_core.iam.routing import landing_path_for_profile
from recovery_core.iam.scope import TenantContext, get_profile_or_none, get_tenant_context


def user_payload(user) -> dict:
    return {
        "id": user.id,
        "username": getattr(user, "username", None),
        "email": getattr(user, "email", None),
        "is_superuser": bool(getattr(user, "is_superuser", False)),
    }


def profile_payload(profile) -> dict:
    return {
        "id": str(profile.id),
        "role": profile.role,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "email": profile.email,
    }


def context_payload(ctx: TenantContext) -> dict:
    return {
        "tenant_id": str(ctx.tenant_id),
        "role": ctx.role,
        "is_privileged": ctx.is_privileged,
        "is_override": ctx.is_override,
    }


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeResponseSerializer}, tags=["IAM"])
    def get(self, request):
        """
        Caller identity, resolved tenant context and landing path.
        Honors X-Tenant-Id for privileged roles (403 for everyone else).
        """
        ctx = get_tenant_context(request)
        profile = get_profile_or_none(request.user)

        return Response(
            {
                "user": user_payload(request.user),
                "profile": profile_payload(profile),
                "tenant_context": context_payload(ctx),
                "redirect_to": landing_path_for_profile(profile),
            },
            status=status.HTTP_200_OK,
        )
