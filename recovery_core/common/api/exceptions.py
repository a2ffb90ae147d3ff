# recovery_core/common/api/exceptions.py

from __future__ import annotations

import logging
import re
import uuid
from typing import Any

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR_MSG = "Unexpected server error."
REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def ensure_request_id(request) -> str:
    """
    request.request_id, set once per request. A well-formed incoming
    X-Request-Id (from a proxy) is reused so logs line up across hops.
    """
    if request is None:
        return uuid.uuid4().hex
    rid = getattr(request, "request_id", None)
    if rid:
        return rid
    incoming = (getattr(request, "META", {}) or {}).get("HTTP_X_REQUEST_ID", "")
    rid = incoming if REQUEST_ID_RE.match(incoming) else uuid.uuid4().hex
    request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    """
    Canonical error envelope.
    Reusable from Django middleware (JsonResponse) and DRF (Response).
    """
    rid = ensure_request_id(request)
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": rid,
        }
    }


class ConflictError(APIException):
    """
    409 Conflict that still flows through the global exception handler.
    Use when business rules block an action (e.g. a second active protocol assignment).
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)


class TenantNotFound(PermissionDenied):
    """
    Authenticated principal without a resolvable tenant (missing profile or profile.tenant).
    """
    default_detail = "User tenant not found"
    default_code = "tenant_not_found"


class CrossTenantAccess(PermissionDenied):
    default_detail = "You do not have access to the requested tenant."
    default_code = "cross_tenant"


class ServerSideError(Exception):
    """
    Failures whose detail is for operators only. The client sees a generic 500.
    """
    code = "server_error"

    def __init__(self, message: str = "", *, details: Any = None):
        super().__init__(message)
        self.details = details


class UpstreamError(ServerSideError):
    """Backing store or external API failure."""
    code = "upstream_error"


class ConfigurationError(ServerSideError):
    """Malformed template or rule definition (operator error, not user error)."""
    code = "configuration_error"


def error_code_for(exc: Exception, http_status: int) -> str:
    if isinstance(exc, ValidationError):
        return "validation_error"
    if isinstance(exc, NotAuthenticated):
        return "not_authenticated"
    if isinstance(exc, AuthenticationFailed):
        return "authentication_failed"
    if isinstance(exc, (TenantNotFound, CrossTenantAccess)):
        return exc.default_code
    if isinstance(exc, PermissionDenied):
        return "permission_denied"
    if isinstance(exc, (Http404, NotFound)):
        return "not_found"
    if isinstance(exc, APIException):
        return getattr(exc, "default_code", "api_error") or "api_error"
    if http_status >= 500:
        return "server_error"
    return "error"


def _translate_django_exception(exc: Exception) -> Exception:
    """
    Map Django-level exceptions raised from services/selectors onto DRF ones,
    so that a missing (or tenant-filtered) row is a 404 and model validation is a 400.
    """
    if isinstance(exc, ObjectDoesNotExist):
        return NotFound("Not found.")
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, "message_dict"):
            return ValidationError(exc.message_dict)
        return ValidationError({"detail": exc.messages[0] if len(exc.messages) == 1 else exc.messages})
    return exc


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    exc = _translate_django_exception(exc)
    response = drf_exception_handler(exc, context)

    if response is None:
        rid = ensure_request_id(request)
        code = exc.code if isinstance(exc, ServerSideError) else "server_error"
        logger.error(
            "Unhandled %s (request_id=%s): %s",
            exc.__class__.__name__,
            rid,
            exc,
            exc_info=exc,
            extra={"request_id": rid, "details": getattr(exc, "details", None)},
        )
        return Response(
            build_error_envelope(
                request=request,
                code=code,
                message=GENERIC_SERVER_ERROR_MSG,
                details=None,
            ),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    http_status = response.status_code
    code = error_code_for(exc, http_status)

    data = response.data

    # Message + details rules:
    # 1) {"detail": "..."} only -> message=detail, details=None
    # 2) {"detail": "...", ...} -> message=detail, details={...without detail}
    # 3) otherwise -> message="Request failed.", details=data
    message = "Request failed."
    details = data

    if isinstance(data, dict) and "detail" in data:
        message = str(data.get("detail"))
        rest = {k: v for k, v in data.items() if k != "detail"}
        details = rest or None
    elif isinstance(data, list) and len(data) == 1:
        message = str(data[0])
        details = None

    return Response(
        build_error_envelope(
            request=request,
            code=code,
            message=message,
            details=details,
        ),
        status=http_status,
        headers=response.headers,
    )
