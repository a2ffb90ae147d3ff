# recovery_core/forms/tests/test_forms_api.py
import pytest

from recovery_core.forms.extraction import build_flow
from recovery_core.forms.services import PatientFormService
from recovery_core.iam.models import ProfileRole
from recovery_core.tests.helpers import error_of

pytestmark = pytest.mark.django_db

SUBMIT = "/api/v1/forms/submit/"


@pytest.fixture
def steps(form_template):
    return build_flow(form_template).steps


def _answer(client, form, step, response, **extra):
    return client.post(
        SUBMIT,
        {"patient_form_id": str(form.id), "question_id": step.question_id, "response": response, **extra},
        format="json",
    )


def test_patient_submits_one_answer(patient_client, patient_form, steps):
    res = _answer(patient_client, patient_form, steps[0], 3, response_method="button", time_to_respond=4)
    assert res.status_code == 201

    body = res.json()
    assert body["success"] is True
    assert body["alerts"] == []
    assert body["response"]["parsed_value"] == 3
    assert body["response"]["response_method"] == "button"
    assert body["completion_status"]["percentage"] == 20


def test_severe_pain_returns_alert(patient_client, patient_form, steps):
    res = _answer(patient_client, patient_form, steps[0], "9")
    assert res.status_code == 201

    (alert,) = res.json()["alerts"]
    assert alert["alert_type"] == "high_pain_level"
    assert alert["severity"] == "high"
    assert alert["requires_immediate_action"] is True


def test_invalid_answer_is_400_with_reason(patient_client, patient_form, steps):
    res = _answer(patient_client, patient_form, steps[0], "twelve")
    assert res.status_code == 400
    assert error_of(res)["message"] == "Please enter a whole number from 0 to 10."


def test_patient_cannot_answer_someone_elses_form(client_for, make_user, tenant, patient_form, steps):
    stranger = client_for(make_user(ProfileRole.PATIENT, tenant))

    res = _answer(stranger, patient_form, steps[0], "3")
    assert res.status_code == 404


def test_other_tenant_staff_cannot_see_form(client_for, make_user, other_tenant, patient_form, steps):
    nurse = client_for(make_user(ProfileRole.NURSE, other_tenant))

    assert _answer(nurse, patient_form, steps[0], "3").status_code == 404
    assert nurse.get(f"/api/v1/forms/instances/{patient_form.id}/").status_code == 404


def test_batch_submit_reports_per_item(surgeon_client, patient_form, steps):
    res = surgeon_client.put(
        SUBMIT,
        {
            "patient_form_id": str(patient_form.id),
            "responses": [
                {"question_id": steps[0].question_id, "response": "4"},
                {"question_id": steps[1].question_id, "response": "perhaps"},
                {"question_id": steps[2].question_id, "response": "101.5"},
            ],
        },
        format="json",
    )
    assert res.status_code == 200

    body = res.json()
    assert body["success"] is False
    assert [r["success"] for r in body["results"]] == [True, False, True]
    assert body["results"][1]["error"] == "Please answer Yes or No."
    assert [a["alert_type"] for a in body["alerts"]] == ["threshold_exceeded"]
    assert body["completion_status"]["answered_questions"] == 2


def test_batch_submit_bad_timing_is_an_item_failure(surgeon_client, patient_form, steps):
    res = surgeon_client.put(
        SUBMIT,
        {
            "patient_form_id": str(patient_form.id),
            "responses": [
                {"question_id": steps[0].question_id, "response": "4", "time_to_respond": "abc"},
                {"question_id": steps[1].question_id, "response": "no", "time_to_respond": 8},
            ],
        },
        format="json",
    )
    assert res.status_code == 200
    assert [r["success"] for r in res.json()["results"]] == [False, True]


def test_instance_detail_carries_completion(patient_client, patient_form, steps):
    _answer(patient_client, patient_form, steps[0], "2")

    res = patient_client.get(f"/api/v1/forms/instances/{patient_form.id}/")
    assert res.status_code == 200
    assert res.json()["status"] == "in_progress"
    assert res.json()["completion_status"]["answered_questions"] == 1


def test_responses_latest_and_history(patient_client, patient_form, steps):
    _answer(patient_client, patient_form, steps[0], "2")
    _answer(patient_client, patient_form, steps[0], "5")

    latest = patient_client.get(f"/api/v1/forms/instances/{patient_form.id}/responses/").json()
    history = patient_client.get(f"/api/v1/forms/instances/{patient_form.id}/responses/", {"history": "1"}).json()

    assert [r["parsed_value"] for r in latest] == [5]
    assert [r["parsed_value"] for r in history] == [2, 5]


def test_next_step_endpoint(patient_client, patient_form, steps):
    _answer(patient_client, patient_form, steps[0], "2")

    res = patient_client.get(f"/api/v1/forms/instances/{patient_form.id}/next-step/")
    assert res.status_code == 200

    body = res.json()
    assert body["is_complete"] is False
    assert body["step"]["step_id"] == steps[1].step_id
    assert body["prompt"] == "Do you have a fever? (Please answer Yes or No)"


def test_patient_lists_only_own_instances(patient_client, client_for, make_user, tenant, patient_form):
    own = patient_client.get("/api/v1/forms/instances/")
    assert own.status_code == 200
    assert own.json()["count"] == 1

    stranger = client_for(make_user(ProfileRole.PATIENT, tenant))
    assert stranger.get("/api/v1/forms/instances/").json()["count"] == 0


def test_next_pending_form_for_patient_and_staff(patient_client, surgeon_client, patient, patient_form):
    res = patient_client.get("/api/v1/forms/instances/next/")
    assert res.status_code == 200
    assert res.json()["patient_form"]["id"] == str(patient_form.id)

    res = surgeon_client.get("/api/v1/forms/instances/next/", {"patient_id": str(patient.id)})
    assert res.json()["patient_form"]["id"] == str(patient_form.id)

    assert surgeon_client.get("/api/v1/forms/instances/next/").status_code == 400


def test_next_pending_form_is_null_once_completed(tenant, patient_client, patient_form):
    PatientFormService.update_status(tenant_id=tenant.id, patient_form_id=patient_form.id, status="completed")

    res = patient_client.get("/api/v1/forms/instances/next/")
    assert res.status_code == 200
    assert res.json() == {"patient_form": None}


def test_templates_list_and_flow(patient_client, form_template):
    res = patient_client.get("/api/v1/forms/templates/")
    assert res.status_code == 200
    assert res.json()["count"] == 1
    assert res.json()["results"][0]["section_count"] == 2

    flow = patient_client.get(f"/api/v1/forms/templates/{form_template.id}/flow/")
    assert flow.status_code == 200
    assert flow.json()["total_steps"] == 5
    assert flow.json()["steps"][0]["prompt"] == "How is your pain today? (Please rate from 0 to 10)"


def test_template_authoring_is_clinical_only(surgeon_client, patient_client):
    payload = {
        "name": "Wound check",
        "sections": [{"name": "Wound", "questions": [{"text": "Any redness?", "question_type": "yes_no"}]}],
    }

    assert patient_client.post("/api/v1/forms/templates/", payload, format="json").status_code == 403

    res = surgeon_client.post("/api/v1/forms/templates/", payload, format="json")
    assert res.status_code == 201
    assert res.json()["name"] == "Wound check"


def test_protocol_forms_issue_and_status(surgeon_client, patient, form_template):
    payload = {"patient_id": str(patient.id), "template_id": str(form_template.id), "assigned_date": "2025-01-12"}

    created = surgeon_client.post("/api/v1/forms/protocol-forms/", payload, format="json")
    assert created.status_code == 201

    again = surgeon_client.post("/api/v1/forms/protocol-forms/", payload, format="json")
    assert again.status_code == 200
    assert again.json()["id"] == created.json()["id"]

    patched = surgeon_client.patch(
        "/api/v1/forms/protocol-forms/",
        {"patient_form_id": created.json()["id"], "status": "in_progress"},
        format="json",
    )
    assert patched.status_code == 200
    assert patched.json()["status"] == "in_progress"


def test_protocol_forms_for_day(surgeon_client, tenant, surgeon_user, form_template):
    from recovery_core.protocols.services import ProtocolService

    protocol = ProtocolService.create_protocol(
        tenant_id=tenant.id,
        actor_user_id=surgeon_user.id,
        name="Check-ins",
        tasks=[{"day_offset": 2, "task_type": "form", "title": "Check-in", "form_template_id": form_template.id}],
    )

    on_day = surgeon_client.get("/api/v1/forms/protocol-forms/", {"protocol_id": str(protocol.id), "day": 2})
    off_day = surgeon_client.get("/api/v1/forms/protocol-forms/", {"protocol_id": str(protocol.id), "day": 3})

    assert [f["title"] for f in on_day.json()["forms"]] == ["Check-in"]
    assert off_day.json()["forms"] == []


def test_patient_schedule_without_protocol_is_404(patient_client):
    res = patient_client.get("/api/v1/forms/protocol-forms/")
    assert res.status_code == 404
    assert error_of(res)["message"] == "No active protocol for patient."
