# recovery_core/tasks/tests/test_task_api.py
from datetime import date

import pytest

from recovery_core.protocols.services import AssignmentService
from recovery_core.tasks.models import TaskStatus

pytestmark = pytest.mark.django_db


@pytest.fixture
def assigned(tenant, protocol, patient):
    return AssignmentService.assign(
        tenant_id=tenant.id,
        protocol_id=protocol.id,
        patient_id=patient.id,
        start_date=date(2025, 1, 10),
    ).assignment


def test_list_filters_by_due_window(surgeon_client, assigned, patient):
    res = surgeon_client.get(
        "/api/v1/tasks/",
        {"patient_id": str(patient.id), "due_after": "2025-01-06", "due_before": "2025-01-17"},
    )
    assert res.status_code == 200
    assert [t["due_date"] for t in res.json()] == ["2025-01-10", "2025-01-17"]


def test_list_rejects_bad_filter_values(surgeon_client, assigned):
    res = surgeon_client.get("/api/v1/tasks/", {"status": "sleeping"})
    assert res.status_code == 400
    assert "status" in res.json()["error"]["details"]


def test_patient_sees_and_completes_own_tasks(patient_client, assigned):
    res = patient_client.get("/api/v1/tasks/")
    assert res.status_code == 200
    tasks = res.json()
    assert len(tasks) == 3

    done = patient_client.post(f"/api/v1/tasks/{tasks[0]['id']}/complete/", {"completion_data": {"minutes": 10}}, format="json")
    assert done.status_code == 200
    assert done.json()["status"] == TaskStatus.COMPLETED
    assert done.json()["is_overdue"] is False


def test_patient_cannot_touch_someone_elses_task(client_for, make_user, tenant, assigned):
    from recovery_core.iam.models import ProfileRole

    stranger = client_for(make_user(ProfileRole.PATIENT, tenant))
    task_id = assigned.tasks.first().id

    assert stranger.get(f"/api/v1/tasks/{task_id}/").status_code == 404
    assert stranger.post(f"/api/v1/tasks/{task_id}/start/").status_code == 404


def test_foreign_tenant_task_is_404(client_for, make_user, other_tenant, assigned):
    from recovery_core.iam.models import ProfileRole

    other = client_for(make_user(ProfileRole.NURSE, other_tenant))
    task_id = assigned.tasks.first().id

    assert other.get(f"/api/v1/tasks/{task_id}/").status_code == 404


def test_list_for_one_recovery_day(surgeon_client, assigned, patient):
    res = surgeon_client.get("/api/v1/tasks/", {"patient_id": str(patient.id), "day": "7"})
    assert res.status_code == 200
    assert [t["title"] for t in res.json()] == ["Walk 10 minutes"]

    res = surgeon_client.get("/api/v1/tasks/", {"patient_id": str(patient.id), "day": "-5"})
    assert [t["day_offset"] for t in res.json()] == [-5]


def test_day_view_needs_a_patient_for_staff(surgeon_client, assigned):
    res = surgeon_client.get("/api/v1/tasks/", {"day": "0"})
    assert res.status_code == 400


def test_patient_day_view_defaults_to_own_record(patient_client, assigned):
    res = patient_client.get("/api/v1/tasks/", {"day": "0"})
    assert res.status_code == 200
    assert [t["title"] for t in res.json()] == ["Surgery day meds"]
