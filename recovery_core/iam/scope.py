# recovery_core/iam/scope.py
"""
Tenant isolation guard.

Every data operation is parameterised by the tenant resolved here. The tenant
comes from the caller's Profile; only privileged roles (saas_admin,
super_admin) may point a request at another tenant with ``X-Tenant-Id``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from django.db.models import QuerySet
from rest_framework.exceptions import NotAuthenticated, NotFound, ValidationError

from recovery_core.common.api.exceptions import CrossTenantAccess, TenantNotFound
from recovery_core.iam.models import ADMIN_ROLES, CLINICAL_ROLES, PRIVILEGED_ROLES, Profile, ProfileRole

logger = logging.getLogger(__name__)

# Preferred header name, plus the legacy casing some clients still send.
HDR_TENANT = "X-Tenant-Id"
HDR_TENANT_LEGACY = "X-Tenant-ID"

INVALID_TENANT_HEADER_MSG = "Invalid X-Tenant-Id header. Provide a valid UUID."

_REQUEST_CACHE_ATTR = "_tenant_context"


@dataclass(frozen=True)
class TenantContext:
    tenant_id: UUID
    role: str
    user_id: int
    profile_id: UUID
    is_override: bool = False

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_clinical(self) -> bool:
        return self.role in CLINICAL_ROLES

    @property
    def is_patient(self) -> bool:
        return self.role == ProfileRole.PATIENT


def parse_tenant_header(request) -> Optional[UUID]:
    """
    Returns the X-Tenant-Id header as UUID, None when absent.
    Raises 400 when present but malformed.
    """
    try:
        raw = request.headers.get(HDR_TENANT) or request.headers.get(HDR_TENANT_LEGACY)
    except AttributeError:
        raw = None
    if not raw:
        raw = request.META.get("HTTP_X_TENANT_ID")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError({"detail": INVALID_TENANT_HEADER_MSG})


def get_profile_or_none(user) -> Optional[Profile]:
    if not user or not getattr(user, "is_authenticated", False):
        return None
    return Profile.objects.select_related("tenant").filter(user_id=user.id).first()


def build_tenant_context(user, *, requested_tenant_id: Optional[UUID] = None) -> TenantContext:
    """
    Resolve (tenant_id, role) for an authenticated principal.

    - no session                          -> 401
    - missing profile / profile w/o tenant -> 403 "User tenant not found"
    - privileged role + requested tenant  -> override (404 if tenant missing)
    - other role + different tenant       -> 403 cross-tenant
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise NotAuthenticated()

    profile = get_profile_or_none(user)
    if profile is None or not profile.is_active:
        raise TenantNotFound()

    role = profile.role

    if requested_tenant_id is not None and role in PRIVILEGED_ROLES:
        from recovery_core.tenants.selectors import get_tenant_or_none

        if get_tenant_or_none(tenant_id=requested_tenant_id) is None:
            raise NotFound("Tenant not found.")
        return TenantContext(
            tenant_id=requested_tenant_id,
            role=role,
            user_id=user.id,
            profile_id=profile.id,
            is_override=requested_tenant_id != profile.tenant_id,
        )

    if profile.tenant_id is None:
        raise TenantNotFound()

    if requested_tenant_id is not None and requested_tenant_id != profile.tenant_id:
        logger.warning(
            "Rejected cross-tenant request: user_id=%s role=%s own_tenant=%s requested_tenant=%s",
            user.id,
            role,
            profile.tenant_id,
            requested_tenant_id,
        )
        raise CrossTenantAccess()

    return TenantContext(
        tenant_id=profile.tenant_id,
        role=role,
        user_id=user.id,
        profile_id=profile.id,
    )


def get_tenant_context(request) -> TenantContext:
    """
    Request-level entry point used by permissions and views.
    The resolved context is cached on the request (and on the wrapped
    HttpRequest for DRF requests).
    """
    cached = getattr(request, _REQUEST_CACHE_ATTR, None)
    if cached is not None:
        return cached

    ctx = build_tenant_context(
        getattr(request, "user", None),
        requested_tenant_id=parse_tenant_header(request),
    )

    setattr(request, _REQUEST_CACHE_ATTR, ctx)
    raw = getattr(request, "_request", None)
    if raw is not None:
        setattr(raw, _REQUEST_CACHE_ATTR, ctx)
    request.tenant_id = ctx.tenant_id
    return ctx


def tenant_filter(queryset: QuerySet, ctx: TenantContext) -> QuerySet:
    """
    The single query-construction point for tenant isolation.
    Apply this BEFORE caller-supplied filters; later .filter() calls can only narrow.
    """
    return queryset.filter(tenant_id=ctx.tenant_id)


def validate_tenant_access(ctx: TenantContext, resource_tenant_id: Any) -> bool:
    if resource_tenant_id is None:
        return False
    try:
        return UUID(str(resource_tenant_id)) == ctx.tenant_id
    except ValueError:
        return False


def log_tenant_event(
    ctx: TenantContext,
    *,
    action: str,
    resource_type: str,
    resource_id: Any = None,
    metadata: Optional[dict] = None,
) -> None:
    """
    Fire-and-forget audit row for a guarded operation.
    Never fails the caller; failures are logged by AuditService.log_safely.
    """
    from recovery_core.audit.services import AuditService

    AuditService.log_safely(
        tenant_id=ctx.tenant_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        actor_user_id=ctx.user_id,
        metadata={"role": ctx.role, **(metadata or {})},
    )
