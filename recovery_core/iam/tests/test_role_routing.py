# recovery_core/iam/tests/test_role_routing.py
from datetime import date, timedelta

import pytest

from recovery_core.iam.models import ProfileRole
from recovery_core.iam.routing import (
    PATH_DEFAULT,
    PATH_POSTOP,
    PATH_PREOP,
    has_route_access,
    route_for_role,
)

TODAY = date(2025, 3, 1)


@pytest.mark.parametrize("role", list(ProfileRole.values) + [None, "", "unknown_role"])
def test_route_is_total(role):
    path = route_for_role(role, today=TODAY)
    assert isinstance(path, str)
    assert path.startswith("/")


def test_unknown_role_falls_back_to_dashboard():
    assert route_for_role("unknown_role") == PATH_DEFAULT


@pytest.mark.parametrize(
    "surgery_date, expected",
    [
        (None, PATH_PREOP),
        (TODAY + timedelta(days=3), PATH_PREOP),
        (TODAY, PATH_POSTOP),
        (TODAY - timedelta(days=10), PATH_POSTOP),
    ],
)
def test_patient_route_follows_recovery_phase(surgery_date, expected):
    assert route_for_role(ProfileRole.PATIENT, surgery_date=surgery_date, today=TODAY) == expected


@pytest.mark.parametrize(
    "role, path, allowed",
    [
        (ProfileRole.PATIENT, "/postop/day/3", True),
        (ProfileRole.PATIENT, "/provider/patients", False),
        (ProfileRole.NURSE, "/provider/patients/123", True),
        (ProfileRole.NURSE, "/admin", False),
        (ProfileRole.PRACTICE_ADMIN, "/practice/protocols", True),
        (ProfileRole.PRACTICE_ADMIN, "/saasadmin/protocols", False),
        (ProfileRole.SUPER_ADMIN, "/saasadmin/protocols", True),
        ("unknown_role", "/dashboard", True),
        ("unknown_role", "/provider", False),
        # prefix match is per path segment
        (ProfileRole.PATIENT, "/preoperative-tools", False),
    ],
)
def test_route_access(role, path, allowed):
    assert has_route_access(role, path) is allowed
