# recovery_core/forms/tests/test_extraction.py
import pytest

from recovery_core.common.api.exceptions import ConfigurationError
from recovery_core.forms.extraction import FormExtractionService, build_flow, create_chat_prompt
from recovery_core.forms.models import FormTemplate, Question
from recovery_core.forms.services import FormTemplateService

pytestmark = pytest.mark.django_db


def test_extract_is_deterministic(tenant, form_template):
    first = FormExtractionService.extract(tenant_id=tenant.id, template_id=form_template.id)
    second = FormExtractionService.extract(tenant_id=tenant.id, template_id=form_template.id)

    assert first.as_dict() == second.as_dict()


def test_steps_follow_section_then_question_order(form_template):
    flow = build_flow(form_template)

    assert flow.total_steps == 5
    assert flow.required_steps == 2
    assert [s.question_type for s in flow.steps] == ["pain_scale", "yes_no", "number", "text", "single_choice"]
    assert [s.section_name for s in flow.steps] == ["Pain", "Pain", "Recovery", "Recovery", "Recovery"]
    assert [s.index for s in flow.steps] == list(range(5))

    for step in flow.steps:
        assert step.step_id == f"{step.section_id}-{step.question_id}"

    chain = [s.next_step_id for s in flow.steps]
    assert chain == [s.step_id for s in flow.steps[1:]] + [None]


def test_section_sort_order_wins_over_listing_order(tenant):
    template = FormTemplateService.create_template(
        tenant_id=tenant.id,
        name="Reordered",
        sections=[
            {"name": "Second", "sort_order": 2, "questions": [{"text": "B?", "question_type": "text"}]},
            {"name": "First", "sort_order": 1, "questions": [{"text": "A?", "question_type": "text"}]},
        ],
    )

    flow = build_flow(template)
    assert [s.question_text for s in flow.steps] == ["A?", "B?"]
    assert [s["name"] for s in flow.as_dict()["sections"]] == ["First", "Second"]


def test_placement_overrides_required_and_rules(tenant):
    template = FormTemplateService.create_template(
        tenant_id=tenant.id,
        name="Overrides",
        sections=[
            {
                "name": "Only",
                "questions": [
                    {
                        "text": "Weight (kg)",
                        "question_type": "number",
                        "is_required": True,
                        "validation_rules": {"min": 20, "max": 300},
                        "is_required_override": False,
                        "custom_validation": {"max": 200},
                    }
                ],
            }
        ],
    )

    step = build_flow(template).steps[0]
    assert step.is_required is False
    assert step.validation_rules == {"min": 20, "max": 200}


def test_empty_template_has_no_steps(tenant):
    template = FormTemplateService.create_template(tenant_id=tenant.id, name="Empty")

    flow = build_flow(template)
    assert flow.total_steps == 0
    assert flow.as_dict()["steps"] == []


def test_malformed_options_are_a_configuration_error(form_template):
    Question.objects.filter(tenant_id=form_template.tenant_id, question_type="single_choice").update(
        options={"Well": 1}
    )

    with pytest.raises(ConfigurationError):
        build_flow(form_template)


def test_malformed_alert_rules_are_a_configuration_error(form_template):
    Question.objects.filter(tenant_id=form_template.tenant_id, question_type="yes_no").update(
        clinical_alerts=["yes"]
    )

    with pytest.raises(ConfigurationError) as excinfo:
        build_flow(form_template)
    assert "question_id" in excinfo.value.details


def test_other_tenant_template_is_not_found(other_tenant, form_template):
    with pytest.raises(FormTemplate.DoesNotExist):
        FormExtractionService.extract(tenant_id=other_tenant.id, template_id=form_template.id)


def test_chat_prompts_by_question_type(form_template):
    pain, fever, temperature, notes, sleep = build_flow(form_template).steps

    assert create_chat_prompt(pain) == "How is your pain today? (Please rate from 0 to 10)"
    assert create_chat_prompt(fever) == "Do you have a fever? (Please answer Yes or No)"
    assert create_chat_prompt(temperature) == "Temperature (F)"
    assert create_chat_prompt(sleep) == "How did you sleep?\n\nOptions:\n1. Well\n2. Okay\n3. Poorly"


def test_chat_prompt_appends_help_text(tenant):
    template = FormTemplateService.create_template(
        tenant_id=tenant.id,
        name="Help",
        sections=[
            {
                "name": "Only",
                "questions": [{"text": "Any swelling?", "question_type": "yes_no", "help_text": "Check both legs."}],
            }
        ],
    )

    step = build_flow(template).steps[0]
    assert create_chat_prompt(step) == "Any swelling? (Please answer Yes or No)\n\nCheck both legs."
