# recovery_core/iam/openapi.py
from drf_spectacular.extensions import OpenApiAuthenticationExtension

from recovery_core.iam.auth import access_cookie_name


class CookieOrHeaderJWTScheme(OpenApiAuthenticationExtension):
    """Registered on import from IamConfig.ready()."""

    target_class = "recovery_core.iam.auth.CookieOrHeaderJWTAuthentication"
    name = "BearerOrCookieJWT"

    def get_security_definition(self, auto_schema):
        cookie_name = access_cookie_name()
        return {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": f"`Authorization: Bearer <access>` header, or the HttpOnly `{cookie_name}` cookie set at login.",
        }
