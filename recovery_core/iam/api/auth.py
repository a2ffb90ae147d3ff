# recovery_core/iam/api/auth.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from django.conf import settings
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer

from recovery_core.audit.services import AuditService
from recovery_core.iam.api.schema_serializers import DetailResponseSerializer, LoginRequestSerializer
from recovery_core.iam.auth import access_cookie_name
from recovery_core.iam.scope import get_profile_or_none

logger = logging.getLogger(__name__)

REFRESH_COOKIE_DEFAULT = "rc_refresh"


def _jwt_settings() -> dict:
    return getattr(settings, "SIMPLE_JWT", {}) or {}


def _max_age(lifetime: Any) -> int:
    """timedelta or seconds -> seconds; anything unparseable yields a session cookie (0)."""
    if isinstance(lifetime, timedelta):
        return int(lifetime.total_seconds())
    try:
        return int(lifetime)
    except (TypeError, ValueError):
        return 0


def refresh_cookie_name() -> str:
    return _jwt_settings().get("AUTH_COOKIE_REFRESH", REFRESH_COOKIE_DEFAULT)


def _token_cookies(access: str, refresh: str):
    cfg = _jwt_settings()
    yield access_cookie_name(), access, cfg.get("ACCESS_TOKEN_LIFETIME", timedelta(minutes=10))
    yield refresh_cookie_name(), refresh, cfg.get("REFRESH_TOKEN_LIFETIME", timedelta(days=14))


def attach_token_cookies(response: Response, *, access: str, refresh: str) -> Response:
    cfg = _jwt_settings()
    for name, value, lifetime in _token_cookies(access, refresh):
        response.set_cookie(
            name,
            value,
            max_age=_max_age(lifetime),
            httponly=True,
            secure=bool(cfg.get("AUTH_COOKIE_SECURE", False)),
            samesite=cfg.get("AUTH_COOKIE_SAMESITE", "Lax"),
            path="/",
        )
    return response


def _audit_login(user) -> None:
    profile = get_profile_or_none(user)
    if profile is None or profile.tenant_id is None:
        # integrity gap; the guard reports it on the next scoped request
        logger.warning("Login without tenant: user_id=%s", user.pk)
        return
    AuditService.log_safely(
        tenant_id=profile.tenant_id,
        action="auth.login",
        resource_type="User",
        resource_id=user.pk,
        actor_user_id=user.pk,
        metadata={"role": profile.role},
    )


class LoginView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(request=LoginRequestSerializer, responses={200: DetailResponseSerializer}, tags=["IAM"])
    def post(self, request):
        serializer = TokenObtainPairSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        _audit_login(serializer.user)

        tokens = serializer.validated_data
        return attach_token_cookies(
            Response({"detail": "login ok"}, status=status.HTTP_200_OK),
            access=tokens["access"],
            refresh=tokens["refresh"],
        )


class RefreshView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(request=None, responses={200: DetailResponseSerializer}, tags=["IAM"])
    def post(self, request):
        refresh = request.COOKIES.get(refresh_cookie_name()) or request.data.get("refresh")

        serializer = TokenRefreshSerializer(data={"refresh": refresh})
        serializer.is_valid(raise_exception=True)

        # ROTATE_REFRESH_TOKENS hands back a new refresh token
        return attach_token_cookies(
            Response({"detail": "refreshed"}, status=status.HTTP_200_OK),
            access=serializer.validated_data["access"],
            refresh=serializer.validated_data.get("refresh", refresh),
        )


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: DetailResponseSerializer}, tags=["IAM"])
    def post(self, request):
        res = Response({"detail": "logged out"}, status=status.HTTP_200_OK)
        for name in (access_cookie_name(), refresh_cookie_name()):
            res.delete_cookie(name, path="/")
        return res
