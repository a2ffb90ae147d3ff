import json

import pytest
from django.contrib.auth.models import User
from django.test import RequestFactory
from rest_framework.test import APIClient

from recovery_core.common.api.exceptions import (
    GENERIC_SERVER_ERROR_MSG,
    ConfigurationError,
    ConflictError,
    UpstreamError,
    api_exception_handler,
)
from recovery_core.common.middleware import TenantScopeMiddleware
from recovery_core.tests.helpers import error_of

pytestmark = pytest.mark.django_db


def test_middleware_malformed_tenant_header_returns_400_envelope():
    rf = RequestFactory()
    req = rf.get("/api/v1/patients/", HTTP_X_TENANT_ID="not-a-uuid")
    req.user = User.objects.create_user(username="u1", password="pass123")

    mw = TenantScopeMiddleware(get_response=lambda r: None)
    resp = mw.process_request(req)

    assert resp is not None
    assert resp.status_code == 400

    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "validation_error"
    assert "X-Tenant-Id" in body["error"]["message"]
    assert body["error"]["request_id"]


def test_middleware_session_user_cross_tenant_returns_403_envelope(make_user, tenant, other_tenant):
    rf = RequestFactory()
    req = rf.get("/api/v1/patients/", HTTP_X_TENANT_ID=str(other_tenant.id))
    req.user = make_user("nurse", tenant)

    mw = TenantScopeMiddleware(get_response=lambda r: None)
    resp = mw.process_request(req)

    assert resp is not None
    assert resp.status_code == 403
    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "cross_tenant"


def test_middleware_skips_docs_and_auth_paths():
    rf = RequestFactory()
    mw = TenantScopeMiddleware(get_response=lambda r: None)

    for path in ("/api/schema/", "/api/v1/auth/login/", "/admin/login/"):
        req = rf.get(path, HTTP_X_TENANT_ID="garbage")
        assert mw.process_request(req) is None


def test_unauthenticated_request_is_401_envelope():
    res = APIClient().get("/api/v1/patients/")
    assert res.status_code == 401

    err = error_of(res)
    assert err["code"] == "not_authenticated"
    assert err["request_id"]
    assert res["X-Request-Id"] == err["request_id"]


def test_missing_row_is_404_envelope(surgeon_client):
    res = surgeon_client.get("/api/v1/patients/00000000-0000-0000-0000-000000000000/")
    assert res.status_code == 404
    assert error_of(res)["code"] == "not_found"


def test_non_uuid_path_is_404_not_500(surgeon_client):
    res = surgeon_client.get("/api/v1/patients/not-a-uuid/")
    assert res.status_code == 404


def test_validation_error_envelope_carries_field_details(surgeon_client):
    res = surgeon_client.post("/api/v1/patients/", {"last_name": "NoFirstName"}, format="json")
    assert res.status_code == 400

    err = error_of(res)
    assert err["code"] == "validation_error"
    assert err["message"] == "Request failed."
    assert "first_name" in err["details"]


@pytest.mark.parametrize(
    "exc, code",
    [
        (UpstreamError("db exploded", details={"attempted": 3}), "upstream_error"),
        (ConfigurationError("bad regex"), "configuration_error"),
        (RuntimeError("boom"), "server_error"),
    ],
)
def test_server_side_errors_are_generic_500(exc, code):
    req = RequestFactory().get("/api/v1/anything/")
    res = api_exception_handler(exc, {"request": req})

    assert res.status_code == 500
    assert res.data["error"]["code"] == code
    assert res.data["error"]["message"] == GENERIC_SERVER_ERROR_MSG
    # no internal detail leaks to the client
    assert res.data["error"]["details"] is None


def test_conflict_error_is_409():
    req = RequestFactory().post("/api/v1/protocols/assign/")
    res = api_exception_handler(ConflictError("Already active."), {"request": req})

    assert res.status_code == 409
    assert res.data["error"]["code"] == "conflict"
    assert res.data["error"]["message"] == "Already active."


def test_incoming_request_id_is_echoed(surgeon_client):
    res = surgeon_client.get("/api/v1/patients/not-a-uuid/", HTTP_X_REQUEST_ID="edge-7f3a9c21")
    assert res["X-Request-Id"] == "edge-7f3a9c21"
    assert res.json()["error"]["request_id"] == "edge-7f3a9c21"
