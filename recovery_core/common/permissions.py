# recovery_core/common/permissions.py

from __future__ import annotations

from rest_framework.exceptions import NotFound
from rest_framework.permissions import SAFE_METHODS, BasePermission

from recovery_core.iam.models import ProfileRole
from recovery_core.iam.scope import get_tenant_context, validate_tenant_access

PATIENT = ProfileRole.PATIENT
SURGEON = ProfileRole.SURGEON
NURSE = ProfileRole.NURSE
PHYSICAL_THERAPIST = ProfileRole.PHYSICAL_THERAPIST
PROVIDER = ProfileRole.PROVIDER

CLINICAL = {SURGEON, NURSE, PHYSICAL_THERAPIST, PROVIDER}
EVERYONE = CLINICAL | {PATIENT}


class BaseRolePermission(BasePermission):
    """
    Base permission class for role-based access control.

    Key behavior:
    - Resolves the tenant context first (401 / 403 "User tenant not found" / 403 cross-tenant
      are raised from here, before any view code runs).
    - Admin-type roles (admin, practice_admin, saas_admin, super_admin) bypass.
    - Uses allowed_roles_per_action for everyone else.
    - If an @action is not listed and the request is SAFE, fall back to list/retrieve.
    """
    message = "You do not have permission to perform this action."

    allowed_roles_per_action: dict[str, set[str]] = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": set(),
        "update": set(),
        "partial_update": set(),
        "destroy": set(),
    }

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        # APIView (no router action): infer from method
        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs or "id" in kwargs

        method = request.method.upper()
        if method in ("GET", "HEAD", "OPTIONS"):
            return "retrieve" if is_detail else "list"
        if method == "POST":
            return "create"
        if method == "PUT":
            return "update"
        if method == "PATCH":
            return "partial_update"
        if method == "DELETE":
            return "destroy"
        return None

    def has_permission(self, request, view) -> bool:
        ctx = get_tenant_context(request)

        if ctx.is_admin:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            is_detail = "pk" in kwargs or "id" in kwargs
            allowed = self.allowed_roles_per_action.get("retrieve" if is_detail else "list")

        if allowed is not None:
            return ctx.role in allowed

        # Unknown action => deny
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        # rows are loaded through tenant_filter; a loaded row is re-checked here
        if not validate_tenant_access(get_tenant_context(request), getattr(obj, "tenant_id", None)):
            raise NotFound("Not found.")
        return True


class AdminOnlyPermission(BaseRolePermission):
    allowed_roles_per_action: dict[str, set[str]] = {}


class PrivilegedOnlyPermission(BasePermission):
    """saas_admin / super_admin only (cross-tenant operations such as tenant management)."""
    message = "You do not have permission to perform this action."

    def has_permission(self, request, view) -> bool:
        return get_tenant_context(request).is_privileged


class PatientPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": CLINICAL,
        "retrieve": EVERYONE,
        "phase": EVERYONE,
        "create": CLINICAL,
        "partial_update": CLINICAL,
        "update": CLINICAL,
        "destroy": set(),
    }


class ProtocolPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": CLINICAL,
        "retrieve": CLINICAL,
        "tasks": CLINICAL,
        "create": {SURGEON, PROVIDER},
        "partial_update": {SURGEON, PROVIDER},
        "destroy": set(),
        "assign": CLINICAL,
        "auto_assign": CLINICAL,
        "rematerialize": {SURGEON, PROVIDER},
        "complete": CLINICAL,
        "cancel": CLINICAL,
    }


class TaskPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "start": EVERYONE,
        "complete": EVERYONE,
    }


class FormTemplatePermission(BaseRolePermission):
    """Templates are read by everyone and authored by clinicians/admins."""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "flow": EVERYONE,
        "create": CLINICAL,
    }


class FormSubmissionPermission(BaseRolePermission):
    """
    Patients submit and read their own form instances (ownership enforced in views);
    clinicians act on any instance in the tenant.
    """
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": EVERYONE,
        "update": EVERYONE,
        "partial_update": EVERYONE,
        "responses": EVERYONE,
        "next_step": EVERYONE,
    }


class AlertPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": CLINICAL,
        "retrieve": CLINICAL,
        "ack": CLINICAL,
        "resolve": CLINICAL,
    }


class AuditPermission(AdminOnlyPermission):
    """Audit log access: admin roles only."""


class ConversationPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": EVERYONE,
        "messages": EVERYONE,
        "answer": EVERYONE,
        "close": EVERYONE,
    }
