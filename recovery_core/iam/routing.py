# recovery_core/iam/routing.py
"""
Role router: deterministic landing path per role.

route_for_role is total. Unknown roles (including values added to the enum
later) fall through to the generic dashboard instead of raising.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from recovery_core.iam.models import ProfileRole

PATH_PREOP = "/preop"
PATH_POSTOP = "/postop"
PATH_PROVIDER_PATIENTS = "/provider/patients"
PATH_ADMIN = "/admin"
PATH_PRACTICE = "/practice/protocols"
PATH_SAASADMIN = "/saasadmin/protocols"
PATH_DEFAULT = "/dashboard"

_STATIC_ROUTES = {
    ProfileRole.ADMIN: PATH_ADMIN,
    ProfileRole.SURGEON: PATH_PROVIDER_PATIENTS,
    ProfileRole.NURSE: PATH_PROVIDER_PATIENTS,
    ProfileRole.PHYSICAL_THERAPIST: PATH_PROVIDER_PATIENTS,
    ProfileRole.PROVIDER: PATH_PROVIDER_PATIENTS,
    ProfileRole.PRACTICE_ADMIN: PATH_PRACTICE,
    ProfileRole.SAAS_ADMIN: PATH_SAASADMIN,
    ProfileRole.SUPER_ADMIN: PATH_SAASADMIN,
}

# Route prefixes each role may open. Shared paths are open to everyone.
SHARED_PREFIXES = ("/dashboard", "/profile")

ROUTE_PREFIXES = {
    ProfileRole.PATIENT: ("/patient", "/preop", "/postop"),
    ProfileRole.SURGEON: ("/provider",),
    ProfileRole.NURSE: ("/provider",),
    ProfileRole.PHYSICAL_THERAPIST: ("/provider",),
    ProfileRole.PROVIDER: ("/provider",),
    ProfileRole.ADMIN: ("/admin", "/practice", "/provider"),
    ProfileRole.PRACTICE_ADMIN: ("/practice", "/provider"),
    ProfileRole.SAAS_ADMIN: ("/saasadmin", "/practice", "/provider"),
    ProfileRole.SUPER_ADMIN: ("/saasadmin", "/practice", "/provider"),
}


def route_for_role(role: Optional[str], *, surgery_date: Optional[date] = None, today: Optional[date] = None) -> str:
    if role == ProfileRole.PATIENT:
        from recovery_core.patients.phase import RecoveryPhaseName, classify

        phase = classify(surgery_date, today)
        return PATH_POSTOP if phase.phase == RecoveryPhaseName.POST_OP else PATH_PREOP

    return _STATIC_ROUTES.get(role, PATH_DEFAULT)


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def has_route_access(role: Optional[str], path: str) -> bool:
    path = path or "/"
    if any(_matches(path, p) for p in SHARED_PREFIXES):
        return True
    return any(_matches(path, p) for p in ROUTE_PREFIXES.get(role, ()))


def landing_path_for_profile(profile, *, today: Optional[date] = None) -> str:
    surgery_date = None
    if profile.role == ProfileRole.PATIENT:
        patient = getattr(profile, "patient", None)
        surgery_date = getattr(patient, "surgery_date", None)
    return route_for_role(profile.role, surgery_date=surgery_date, today=today)
