from __future__ import annotations

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from rest_framework.exceptions import APIException

from recovery_core.common.api.exceptions import build_error_envelope, ensure_request_id, error_code_for


class TenantScopeMiddleware(MiddlewareMixin):
    """
    Early tenant checks for API requests.

    Behavior:
      - Every request gets a request_id (echoed as X-Request-Id).
      - Enforced for both /api/v1/* and /api/* (alias).
      - A malformed X-Tenant-Id header -> 400 envelope, regardless of auth.
      - Session-authenticated users are resolved here already, so a non-privileged
        user sending another tenant's id gets a 403 envelope before any view runs.
      - JWT users are resolved later by the permission layer (request.user is
        only known inside DRF), with the same rules.
      - Docs/schema/admin endpoints and auth endpoints are never checked.
    """

    ENFORCED_PREFIXES = ("/api/v1/", "/api/")

    PUBLIC_PATH_PREFIXES = (
        "/admin/",
        "/api/docs/",
        "/api/schema/",
    )

    AUTH_PATH_SUFFIXES = (
        "/auth/login/",
        "/auth/refresh/",
        "/auth/logout/",
    )

    def _starts_with_any(self, path: str, prefixes: tuple[str, ...]) -> bool:
        return any(path.startswith(p) for p in prefixes)

    def _endswith_any(self, path: str, suffixes: tuple[str, ...]) -> bool:
        return any(path.endswith(s) for s in suffixes)

    def _json_error(self, request, *, status_code: int, code: str, message: str, details=None) -> JsonResponse:
        return JsonResponse(
            build_error_envelope(
                request=request,
                code=code,
                message=message,
                details=details,
            ),
            status=status_code,
        )

    def process_request(self, request):
        ensure_request_id(request)
        request.tenant_id = None

        path = getattr(request, "path", "") or ""

        if self._starts_with_any(path, self.PUBLIC_PATH_PREFIXES):
            return None
        if not self._starts_with_any(path, self.ENFORCED_PREFIXES):
            return None
        if self._endswith_any(path, self.AUTH_PATH_SUFFIXES):
            return None

        from recovery_core.iam.scope import INVALID_TENANT_HEADER_MSG, get_tenant_context, parse_tenant_header

        try:
            requested = parse_tenant_header(request)
        except APIException:
            return self._json_error(
                request,
                status_code=400,
                code="validation_error",
                message=INVALID_TENANT_HEADER_MSG,
            )

        user = getattr(request, "user", None)
        if requested is None or not user or not user.is_authenticated:
            return None

        try:
            get_tenant_context(request)
        except APIException as exc:
            return self._json_error(
                request,
                status_code=exc.status_code,
                code=error_code_for(exc, exc.status_code),
                message=str(exc.detail),
            )
        return None

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid and not response.has_header("X-Request-Id"):
            response["X-Request-Id"] = rid
        return response
