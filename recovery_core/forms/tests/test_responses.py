# recovery_core/forms/tests/test_responses.py
from datetime import date

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import ValidationError

from recovery_core.alerts.models import ClinicalAlert
from recovery_core.audit.models import AuditEvent
from recovery_core.forms.extraction import build_flow
from recovery_core.forms.models import FormResponse, PatientFormStatus
from recovery_core.forms.services import FormResponseService, PatientFormService, completion_percentage
from recovery_core.protocols.services import AssignmentService, ProtocolService
from recovery_core.tasks.models import TaskStatus

pytestmark = pytest.mark.django_db

GOOD_ANSWERS = ["3", "no", "98.6", "Feeling fine", "Well"]


@pytest.fixture
def steps(form_template):
    return build_flow(form_template).steps


def _save(tenant, form, step, response):
    return FormResponseService.save_response(
        tenant_id=tenant.id,
        patient_form_id=form.id,
        question_id=step.question_id,
        response=response,
    )


@pytest.mark.parametrize("answered,total,expected", [(0, 5, 0), (1, 3, 33), (2, 3, 67), (199, 200, 99), (3, 3, 100), (0, 0, 0)])
def test_completion_percentage(answered, total, expected):
    assert completion_percentage(answered, total) == expected


def test_completion_climbs_to_100_and_completes(tenant, patient_form, steps):
    seen = []
    for step, answer in zip(steps, GOOD_ANSWERS):
        result = _save(tenant, patient_form, step, answer)
        seen.append(result.completion_status.percentage)

    assert seen == [20, 40, 60, 80, 100]

    patient_form.refresh_from_db()
    assert patient_form.status == PatientFormStatus.COMPLETED
    assert patient_form.completion_percentage == 100
    assert patient_form.started_at is not None
    assert patient_form.completed_at is not None
    assert AuditEvent.objects.filter(action="form.completed", resource_id=str(patient_form.id)).count() == 1


def test_partial_form_is_in_progress(tenant, patient_form, steps):
    result = _save(tenant, patient_form, steps[0], "3")

    patient_form.refresh_from_db()
    assert patient_form.status == PatientFormStatus.IN_PROGRESS
    assert result.completion_status.is_complete is False
    assert result.completion_status.missing_required_questions == [steps[1].question_id]


def test_completed_form_rejects_more_answers(tenant, patient_form, steps):
    for step, answer in zip(steps, GOOD_ANSWERS):
        _save(tenant, patient_form, step, answer)

    with pytest.raises(ValidationError) as excinfo:
        _save(tenant, patient_form, steps[0], "4")
    assert "Form is already completed." in str(excinfo.value.detail)


def test_batch_reports_bad_item_and_keeps_the_rest(tenant, patient_form, steps):
    items = [{"question_id": s.question_id, "response": a} for s, a in zip(steps, GOOD_ANSWERS)]
    items[0]["response"] = "11"

    result = FormResponseService.save_batch(tenant_id=tenant.id, patient_form_id=patient_form.id, items=items)

    assert result.failed == 1
    assert result.succeeded == 4
    assert result.results[0].success is False
    assert result.results[0].error == "Please enter a number from 0 to 10."
    assert all(r.response_id for r in result.results[1:])

    status = result.completion_status
    assert status.answered_questions == 4
    assert status.percentage == 80
    assert status.missing_required_questions == [steps[0].question_id]
    assert FormResponse.objects.filter(patient_form=patient_form).count() == 4


def test_batch_unknown_question_is_an_item_failure(tenant, patient_form, steps):
    items = [{"question_id": "not-a-question", "response": "x"}, {"question_id": steps[0].question_id, "response": "2"}]

    result = FormResponseService.save_batch(tenant_id=tenant.id, patient_form_id=patient_form.id, items=items)

    assert [r.success for r in result.results] == [False, True]
    assert result.results[0].error == "Question is not part of this form."


@pytest.mark.parametrize("bad_seconds", ["abc", -5, True])
def test_batch_bad_time_to_respond_fails_only_that_item(tenant, patient_form, steps, bad_seconds):
    items = [
        {"question_id": s.question_id, "response": a, "time_to_respond": 12}
        for s, a in zip(steps, GOOD_ANSWERS)
    ]
    items[0]["time_to_respond"] = bad_seconds

    result = FormResponseService.save_batch(tenant_id=tenant.id, patient_form_id=patient_form.id, items=items)

    assert result.failed == 1
    assert result.succeeded == 4
    assert result.results[0].error == "time_to_respond must be a whole number of seconds (0 or more)."
    assert set(FormResponse.objects.filter(patient_form=patient_form).values_list("time_to_respond", flat=True)) == {12}


def test_time_to_respond_accepts_numeric_strings(tenant, patient_form, steps):
    result = FormResponseService.save_response(
        tenant_id=tenant.id,
        patient_form_id=patient_form.id,
        question_id=steps[0].question_id,
        response="2",
        time_to_respond="45",
    )
    assert result.response.time_to_respond == 45


def test_latest_answer_wins(tenant, patient_form, steps):
    _save(tenant, patient_form, steps[0], "3")
    second = _save(tenant, patient_form, steps[0], "9")

    rows = FormResponse.objects.filter(patient_form=patient_form, question_id=steps[0].question_id)
    assert rows.count() == 2

    latest = FormResponseService.latest_responses(patient_form)
    assert latest[steps[0].question_id].parsed_value == 9
    assert second.completion_status.answered_questions == 1
    assert [a.alert_type for a in second.alerts] == ["high_pain_level"]


def test_responses_are_append_only(tenant, patient_form, steps):
    row = _save(tenant, patient_form, steps[0], "3").response
    row.parsed_value = 1

    with pytest.raises(DjangoValidationError):
        row.save()


def test_blank_optional_answer_counts_as_answered(tenant, patient_form, steps):
    result = _save(tenant, patient_form, steps[3], "")

    assert result.response.parsed_value is None
    assert result.completion_status.answered_questions == 1


def test_answers_are_parsed_by_type(tenant, patient_form, steps):
    assert _save(tenant, patient_form, steps[0], "7").response.parsed_value == 7
    assert _save(tenant, patient_form, steps[1], "Y").response.parsed_value == "yes"
    assert _save(tenant, patient_form, steps[2], "99.5").response.parsed_value == 99.5


def test_alerts_are_persisted_with_response_link(tenant, patient_form, steps, patient):
    result = _save(tenant, patient_form, steps[1], "yes")

    (alert,) = result.alerts
    stored = ClinicalAlert.objects.get(id=alert.id)
    assert stored.patient_id == patient.id
    assert stored.patient_form_id == patient_form.id
    assert stored.severity == "high"
    assert stored.message == "Patient reports fever"
    assert stored.meta["form_response_id"] == str(result.response.id)


def test_next_step_resumes_at_first_unanswered(tenant, patient_form, steps):
    assert FormResponseService.next_step(patient_form) == steps[0]

    _save(tenant, patient_form, steps[0], "3")
    _save(tenant, patient_form, steps[2], "98.6")
    assert FormResponseService.next_step(patient_form) == steps[1]

    for index in (1, 3, 4):
        _save(tenant, patient_form, steps[index], GOOD_ANSWERS[index])
    assert FormResponseService.next_step(patient_form) is None


def test_create_instance_is_idempotent(tenant, patient, form_template):
    first, created = PatientFormService.create_instance(
        tenant_id=tenant.id, patient_id=patient.id, template_id=form_template.id, assigned_date=date(2025, 2, 1)
    )
    again, created_again = PatientFormService.create_instance(
        tenant_id=tenant.id, patient_id=patient.id, template_id=form_template.id, assigned_date=date(2025, 2, 1)
    )

    assert created is True
    assert created_again is False
    assert again.id == first.id


def test_completed_form_cannot_be_reopened(tenant, patient_form):
    PatientFormService.update_status(tenant_id=tenant.id, patient_form_id=patient_form.id, status="completed")

    with pytest.raises(ValidationError):
        PatientFormService.update_status(tenant_id=tenant.id, patient_form_id=patient_form.id, status="in_progress")


def test_completing_a_protocol_form_completes_its_task(tenant, surgeon_user, patient, form_template, steps):
    protocol = ProtocolService.create_protocol(
        tenant_id=tenant.id,
        actor_user_id=surgeon_user.id,
        name="Knee with check-ins",
        surgery_type="TKA",
        tasks=[{"day_offset": 1, "task_type": "form", "title": "Day 1 check-in", "form_template_id": form_template.id}],
    )
    AssignmentService.assign(tenant_id=tenant.id, protocol_id=protocol.id, patient_id=patient.id, start_date=date(2025, 1, 10))
    protocol_task = protocol.tasks.get()

    form, _ = PatientFormService.create_instance(
        tenant_id=tenant.id,
        patient_id=patient.id,
        protocol_task_id=protocol_task.id,
        assigned_date=date(2025, 1, 11),
    )
    assert form.task is not None
    assert form.due_date == date(2025, 1, 11)

    FormResponseService.save_batch(
        tenant_id=tenant.id,
        patient_form_id=form.id,
        items=[{"question_id": s.question_id, "response": a} for s, a in zip(steps, GOOD_ANSWERS)],
    )

    form.task.refresh_from_db()
    assert form.task.status == TaskStatus.COMPLETED
    assert form.task.completion_data == {"patient_form_id": str(form.id)}


def test_patient_schedule_lists_today_and_upcoming(tenant, surgeon_user, patient, form_template):
    protocol = ProtocolService.create_protocol(
        tenant_id=tenant.id,
        actor_user_id=surgeon_user.id,
        name="Daily check-ins",
        surgery_type="TKA",
        tasks=[
            {
                "day_offset": 1,
                "task_type": "form",
                "title": "Daily check-in",
                "form_template_id": form_template.id,
                "frequency": {"start_day": 1, "stop_day": 3, "repeat": True},
            }
        ],
    )
    AssignmentService.assign(tenant_id=tenant.id, protocol_id=protocol.id, patient_id=patient.id, start_date=date(2025, 1, 10))

    data = PatientFormService.patient_protocol_forms(tenant_id=tenant.id, patient_id=patient.id, today=date(2025, 1, 11))

    assert data["current_day"] == 1
    assert [f["day"] for f in data["todays_forms"]] == [1]
    assert data["todays_forms"][0]["patient_form_id"] is None
    assert [(f["day"], f["date"]) for f in data["upcoming_forms"]] == [(2, "2025-01-12"), (3, "2025-01-13")]
    assert data["completed_forms"] == []
