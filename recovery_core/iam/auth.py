# recovery_core/iam/auth.py
from __future__ import annotations

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication


def access_cookie_name() -> str:
    return settings.SIMPLE_JWT.get("AUTH_COOKIE", "rc_access")


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    Bearer header first; browser clients fall back to the HttpOnly access cookie.
    The tenant is resolved later by iam.scope.get_tenant_context.
    """

    def authenticate(self, request):
        if self.get_header(request) is not None:
            return super().authenticate(request)

        raw_token = request.COOKIES.get(access_cookie_name())
        if not raw_token:
            return None

        token = self.get_validated_token(raw_token)
        return self.get_user(token), token
