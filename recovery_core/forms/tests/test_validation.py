# recovery_core/forms/tests/test_validation.py
import pytest

from recovery_core.common.api.exceptions import ConfigurationError
from recovery_core.forms.extraction import ConversationalStep
from recovery_core.forms.validation import INVALID_FORMAT_MSG, REQUIRED_MSG, validate


def _step(question_type, *, required=False, rules=None, options=()):
    return ConversationalStep(
        step_id="s-q",
        index=0,
        section_id="s",
        section_name="Section",
        question_id="q",
        question_text="Question?",
        question_type=question_type,
        is_required=required,
        options=tuple(options),
        validation_rules=rules or {},
    )


@pytest.mark.parametrize("blank", [None, "", "   ", []])
def test_blank_required_answer_is_rejected(blank):
    result = validate(_step("text", required=True), blank)
    assert not result.is_valid
    assert result.error == REQUIRED_MSG


def test_blank_optional_answer_is_accepted():
    assert validate(_step("number"), "").is_valid


@pytest.mark.parametrize(
    "question_type,rules,options,value,valid",
    [
        ("number", {}, (), "98.6", True),
        ("number", {}, (), "abc", False),
        ("number", {"min": 90, "max": 110}, (), 120, False),
        ("scale", {}, (), "7", True),
        ("scale", {}, (), "7.5", False),
        ("pain_scale", {}, (), 11, False),
        ("pain_scale", {}, (), "-1", False),
        ("yes_no", {}, (), "Yes", True),
        ("yes_no", {}, (), True, True),
        ("yes_no", {}, (), "maybe", False),
        ("single_choice", {}, ("Well", "Okay"), "Okay", True),
        ("single_choice", {}, ("Well", "Okay"), "Great", False),
        ("multiple_choice", {}, ("Ice", "Rest"), ["Ice", "Rest"], True),
        ("date", {}, (), "2025-01-10", True),
        ("date", {}, (), "10/01/2025", False),
        ("email", {}, (), "pat@example.com", True),
        ("email", {}, (), "pat@", False),
        ("phone", {}, (), "555-123-4567", True),
        ("phone", {}, (), "12345", False),
        ("text", {"max_length": 5}, (), "too long", False),
    ],
)
def test_type_validation(question_type, rules, options, value, valid):
    assert validate(_step(question_type, rules=rules, options=options), value).is_valid is valid


def test_number_bound_message():
    result = validate(_step("number", rules={"min": 90, "max": 110}), "120")
    assert result.error == "Value must be no more than 110."


def test_unknown_multiple_choice_options_are_listed():
    result = validate(_step("multiple_choice", options=("Ice", "Rest")), ["Ice", "Heat"])
    assert result.error == "Invalid option(s): Heat."


def test_pattern_uses_rule_message_or_default():
    with_message = _step("text", rules={"pattern": r"^[A-Z]{3}$", "message": "Use three capitals."})
    without_message = _step("text", rules={"pattern": r"^[A-Z]{3}$"})

    assert validate(with_message, "ABC").is_valid
    assert validate(with_message, "abc").error == "Use three capitals."
    assert validate(without_message, "abc").error == INVALID_FORMAT_MSG


def test_broken_rules_raise_configuration_error():
    with pytest.raises(ConfigurationError):
        validate(_step("text", rules={"pattern": "(["}), "x")

    with pytest.raises(ConfigurationError):
        validate(_step("number", rules={"min": "low"}), "5")
