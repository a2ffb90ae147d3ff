# recovery_core/alerts/tests/test_alerts.py
import pytest
from rest_framework.exceptions import ValidationError

from recovery_core.alerts.models import AlertStatus
from recovery_core.alerts.services import AlertContext, AlertService
from recovery_core.audit.models import AuditEvent
from recovery_core.iam.models import ProfileRole

pytestmark = pytest.mark.django_db


@pytest.fixture
def alert(tenant, patient):
    return AlertService.create_alert(
        ctx=AlertContext(tenant_id=tenant.id, actor_user_id=None),
        patient_id=patient.id,
        alert_type="high_pain_level",
        severity="high",
        message="Patient reported severe pain level: 9/10",
        requires_immediate_action=True,
    )


def test_immediate_alert_is_logged(tenant, patient, caplog):
    caplog.set_level("WARNING", logger="recovery_core.alerts.services")

    AlertService.create_alert(
        ctx=AlertContext(tenant_id=tenant.id, actor_user_id=None),
        patient_id=patient.id,
        alert_type="concerning_symptom",
        message="Fever",
        requires_immediate_action=True,
    )

    assert "requires immediate action" in caplog.text


def test_acknowledge_then_resolve(tenant, surgeon_user, alert):
    ctx = AlertContext(tenant_id=tenant.id, actor_user_id=surgeon_user.id)

    acked = AlertService.acknowledge(ctx=ctx, alert_id=alert.id)
    assert acked.status == AlertStatus.ACKNOWLEDGED
    assert acked.acknowledged_by_user_id == surgeon_user.id

    resolved = AlertService.resolve(ctx=ctx, alert_id=alert.id, note="Called patient")
    assert resolved.status == AlertStatus.RESOLVED
    assert resolved.meta["resolution_note"] == "Called patient"
    assert resolved.acknowledged_at == acked.acknowledged_at

    assert list(
        AuditEvent.objects.filter(resource_id=str(alert.id)).order_by("created_at").values_list("action", flat=True)
    ) == ["alert.acknowledged", "alert.resolved"]


def test_resolve_is_idempotent_and_blocks_ack(tenant, alert):
    ctx = AlertContext(tenant_id=tenant.id, actor_user_id=None)

    first = AlertService.resolve(ctx=ctx, alert_id=alert.id)
    again = AlertService.resolve(ctx=ctx, alert_id=alert.id)
    assert first.resolved_at == again.resolved_at
    assert first.acknowledged_at is not None

    with pytest.raises(ValidationError):
        AlertService.acknowledge(ctx=ctx, alert_id=alert.id)


def test_list_is_paginated_and_filterable(surgeon_client, alert):
    res = surgeon_client.get("/api/v1/alerts/", {"status": "open", "severity": "high"})
    assert res.status_code == 200
    assert res.json()["count"] == 1
    assert res.json()["results"][0]["id"] == str(alert.id)

    assert surgeon_client.get("/api/v1/alerts/", {"severity": "low"}).json()["count"] == 0


def test_ack_and_resolve_endpoints(surgeon_client, alert):
    acked = surgeon_client.post(f"/api/v1/alerts/{alert.id}/ack/")
    assert acked.status_code == 200
    assert acked.json()["status"] == "acknowledged"

    resolved = surgeon_client.post(f"/api/v1/alerts/{alert.id}/resolve/", {"note": "ok"}, format="json")
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "resolved"


def test_patients_cannot_see_alerts(patient_client, alert):
    assert patient_client.get("/api/v1/alerts/").status_code == 403


def test_other_tenant_alert_is_404(client_for, make_user, other_tenant, alert):
    nurse = client_for(make_user(ProfileRole.NURSE, other_tenant))

    assert nurse.get(f"/api/v1/alerts/{alert.id}/").status_code == 404
    assert nurse.post(f"/api/v1/alerts/{alert.id}/ack/").status_code == 404
