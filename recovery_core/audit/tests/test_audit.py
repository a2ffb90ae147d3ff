# recovery_core/audit/tests/test_audit.py
import pytest
from django.db import DatabaseError

from recovery_core.audit.models import AuditEvent
from recovery_core.audit.services import AuditService

pytestmark = pytest.mark.django_db


def test_log_stores_resource_id_as_text(tenant, surgeon_user, patient):
    record = AuditService.log(
        tenant_id=tenant.id,
        action="patient.updated",
        resource_type="Patient",
        resource_id=patient.id,
        actor_user_id=surgeon_user.id,
        metadata={"updated_fields": ["phone"]},
    )

    assert record.resource_id == str(patient.id)
    event = AuditEvent.objects.get(action="patient.updated")
    assert event.metadata == {"updated_fields": ["phone"]}


def test_log_safely_swallows_write_failures(tenant, monkeypatch, caplog):
    def broken_create(**kwargs):
        raise DatabaseError("audit table locked")

    monkeypatch.setattr(AuditEvent.objects, "create", broken_create)

    result = AuditService.log_safely(tenant_id=tenant.id, action="protocol.assigned", resource_type="PatientProtocol")

    assert result is None
    assert "Audit write failed: action=protocol.assigned" in caplog.text


def test_audit_api_is_admin_only(surgeon_client, admin_client, tenant):
    AuditService.log(tenant_id=tenant.id, action="form.completed", resource_type="PatientForm", resource_id="f-1")
    AuditService.log(tenant_id=tenant.id, action="task.completed", resource_type="PatientTask", resource_id="t-1")

    assert surgeon_client.get("/api/v1/audit/events/").status_code == 403

    res = admin_client.get("/api/v1/audit/events/", {"action": "form.completed"})
    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 1
    assert [e["resource_id"] for e in body["results"]] == ["f-1"]


def test_audit_api_filters_by_prefix_and_patient(admin_client, tenant, patient, other_patient):
    AuditService.log(
        tenant_id=tenant.id,
        action="form.completed",
        resource_type="PatientForm",
        resource_id="f-1",
        metadata={"patient_id": str(patient.id)},
    )
    AuditService.log(
        tenant_id=tenant.id,
        action="form.created",
        resource_type="PatientForm",
        resource_id="f-2",
        metadata={"patient_id": str(other_patient.id)},
    )
    AuditService.log(tenant_id=tenant.id, action="task.completed", resource_type="PatientTask", resource_id="t-1")

    res = admin_client.get("/api/v1/audit/events/", {"action_prefix": "form."})
    assert sorted(e["resource_id"] for e in res.json()["results"]) == ["f-1", "f-2"]

    res = admin_client.get("/api/v1/audit/events/", {"patient_id": str(patient.id)})
    assert [e["resource_id"] for e in res.json()["results"]] == ["f-1"]


def test_audit_api_rejects_bad_actor_filter(admin_client):
    res = admin_client.get("/api/v1/audit/events/", {"actor_user_id": "abc"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_audit_api_is_tenant_scoped(admin_client, other_tenant):
    AuditService.log(tenant_id=other_tenant.id, action="form.completed", resource_type="PatientForm", resource_id="x")

    res = admin_client.get("/api/v1/audit/events/")
    assert res.status_code == 200
    assert res.json()["results"] == []
