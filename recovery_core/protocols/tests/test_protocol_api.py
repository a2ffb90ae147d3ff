# recovery_core/protocols/tests/test_protocol_api.py
import pytest

from recovery_core.tests.helpers import error_of

pytestmark = pytest.mark.django_db


def test_create_protocol_with_tasks(surgeon_client, tenant):
    res = surgeon_client.post(
        "/api/v1/protocols/",
        {
            "name": "Hip Standard",
            "surgery_type": "THA",
            "tasks": [
                {"day_offset": 3, "task_type": "walking", "title": "Walk", "frequency": {"start_day": 3, "stop_day": 10, "repeat": True}},
                {"day_offset": -2, "task_type": "education", "title": "Watch video"},
            ],
        },
        format="json",
    )
    assert res.status_code == 201

    body = res.json()
    assert body["tenant_id"] == str(tenant.id)
    assert [t["day_offset"] for t in body["tasks"]] == [-2, 3]


def test_form_task_requires_template_of_same_tenant(surgeon_client, protocol):
    res = surgeon_client.post(
        f"/api/v1/protocols/{protocol.id}/tasks/",
        {"day_offset": 1, "task_type": "form", "title": "Daily check-in"},
        format="json",
    )
    assert res.status_code == 400
    assert "form_template_id" in error_of(res)["details"]


def test_assign_endpoint_reports_tasks_created(surgeon_client, protocol, patient):
    res = surgeon_client.post(
        "/api/v1/protocols/assign/",
        {"protocol_id": str(protocol.id), "patient_id": str(patient.id), "start_date": "2025-01-10"},
        format="json",
    )
    assert res.status_code == 201

    body = res.json()
    assert body["tasks_created"] == 3
    assert body["start_date"] == "2025-01-10"

    again = surgeon_client.post(
        "/api/v1/protocols/assign/",
        {"protocol_id": str(protocol.id), "patient_id": str(patient.id)},
        format="json",
    )
    assert again.status_code == 409


def test_assign_foreign_patient_is_404(surgeon_client, protocol, other_patient):
    res = surgeon_client.post(
        "/api/v1/protocols/assign/",
        {"protocol_id": str(protocol.id), "patient_id": str(other_patient.id)},
        format="json",
    )
    assert res.status_code == 404


def test_assignments_route_is_not_a_protocol_detail(surgeon_client, protocol, patient):
    surgeon_client.post(
        "/api/v1/protocols/assign/",
        {"protocol_id": str(protocol.id), "patient_id": str(patient.id)},
        format="json",
    )

    res = surgeon_client.get("/api/v1/protocols/assignments/", {"patient_id": str(patient.id)})
    assert res.status_code == 200
    assert len(res.json()) == 1
    assert res.json()[0]["protocol_id"] == str(protocol.id)


def test_patients_cannot_manage_protocols(patient_client, protocol):
    assert patient_client.get("/api/v1/protocols/").status_code == 403
    assert patient_client.post("/api/v1/protocols/", {"name": "Mine"}, format="json").status_code == 403
