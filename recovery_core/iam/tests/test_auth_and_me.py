# recovery_core/iam/tests/test_auth_and_me.py
import pytest
from rest_framework.test import APIClient

from recovery_core.conftest import tenant_header
from recovery_core.tests.helpers import error_of

pytestmark = pytest.mark.django_db


def test_login_sets_http_only_cookies_and_cookie_auth_works(surgeon_user):
    c = APIClient()
    res = c.post(
        "/api/v1/auth/login/",
        {"username": surgeon_user.username, "password": "testpass"},
        format="json",
    )
    assert res.status_code == 200
    assert res.cookies["rc_access"]["httponly"]
    assert res.cookies["rc_refresh"]["httponly"]

    # the client keeps the cookies
    me = c.get("/api/v1/me/")
    assert me.status_code == 200
    assert me.json()["user"]["id"] == surgeon_user.id


def test_login_with_bad_password_is_401(surgeon_user):
    res = APIClient().post(
        "/api/v1/auth/login/",
        {"username": surgeon_user.username, "password": "wrong"},
        format="json",
    )
    # no authenticator on the login view, so DRF answers 403 rather than 401
    assert res.status_code in (401, 403)
    assert error_of(res)["code"] == "authentication_failed"


def test_logout_clears_cookies(surgeon_user):
    c = APIClient()
    c.post("/api/v1/auth/login/", {"username": surgeon_user.username, "password": "testpass"}, format="json")

    res = c.post("/api/v1/auth/logout/")
    assert res.status_code == 200
    assert res.cookies["rc_access"].value == ""


def test_me_returns_context_and_landing_path(surgeon_client, surgeon_user, tenant):
    res = surgeon_client.get("/api/v1/me/")
    assert res.status_code == 200

    body = res.json()
    assert body["profile"]["role"] == "surgeon"
    assert body["tenant_context"] == {
        "tenant_id": str(tenant.id),
        "role": "surgeon",
        "is_privileged": False,
        "is_override": False,
    }
    assert body["redirect_to"] == "/provider/patients"


def test_me_reports_privileged_override(super_admin_client, other_tenant):
    res = super_admin_client.get("/api/v1/me/", **tenant_header(other_tenant))
    assert res.status_code == 200

    ctx = res.json()["tenant_context"]
    assert ctx["tenant_id"] == str(other_tenant.id)
    assert ctx["is_privileged"] is True
    assert ctx["is_override"] is True


def test_login_is_audited_in_the_users_tenant(surgeon_user, tenant):
    from recovery_core.audit.models import AuditEvent

    APIClient().post(
        "/api/v1/auth/login/",
        {"username": surgeon_user.username, "password": "testpass"},
        format="json",
    )

    event = AuditEvent.objects.get(action="auth.login")
    assert event.tenant_id == tenant.id
    assert event.resource_id == str(surgeon_user.id)
    assert event.metadata == {"role": "surgeon"}
