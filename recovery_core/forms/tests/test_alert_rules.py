# recovery_core/forms/tests/test_alert_rules.py
import pytest

from recovery_core.common.api.exceptions import ConfigurationError
from recovery_core.forms import alert_rules
from recovery_core.forms.extraction import ConversationalStep


def _step(question_type, **clinical_alerts):
    return ConversationalStep(
        step_id="s-q",
        index=0,
        section_id="s",
        section_name="Section",
        question_id="q",
        question_text="Any chest pain?",
        question_type=question_type,
        is_required=False,
        clinical_alerts=clinical_alerts,
    )


def test_every_rule_is_registered_once():
    names = [rule.__name__ for rule in alert_rules.registered_rules()]
    assert names == ["pain_level", "concerning_symptom", "numeric_threshold", "keyword_detected"]


@pytest.mark.parametrize(
    "value,expected",
    [(9, ("high_pain_level", "high", True)), (8, ("high_pain_level", "high", True)), (6, ("moderate_pain_level", "medium", False))],
)
def test_pain_levels(value, expected):
    (alert,) = alert_rules.evaluate(_step("pain_scale"), value)
    assert (alert.alert_type, alert.severity, alert.requires_immediate_action) == expected


def test_low_pain_raises_nothing():
    assert alert_rules.evaluate(_step("pain_scale"), 5) == []


def test_severe_pain_message():
    (alert,) = alert_rules.evaluate(_step("pain_scale"), 8)
    assert alert.message == "Patient reported severe pain level: 8/10"


def test_pain_thresholds_come_from_settings(settings):
    settings.RECOVERY_PAIN_ALERT_HIGH = 9

    (alert,) = alert_rules.evaluate(_step("pain_scale"), 8)
    assert alert.alert_type == "moderate_pain_level"


def test_concerning_yes_uses_configured_severity():
    step = _step("yes_no", concerning_if_yes=True, severity="critical", immediate_action=True)

    (alert,) = alert_rules.evaluate(step, "yes")
    assert alert.alert_type == "concerning_symptom"
    assert alert.severity == "critical"
    assert alert.requires_immediate_action is True
    assert alert.message == "Patient answered yes to: Any chest pain?"

    assert alert_rules.evaluate(step, "no") == []


def test_numeric_thresholds_both_ways():
    step = _step("number", max_threshold=100.4, min_threshold=95)

    (high,) = alert_rules.evaluate(step, 101.2)
    assert high.alert_type == "threshold_exceeded"
    assert high.meta == {"value": 101.2, "threshold": 100.4}

    (low,) = alert_rules.evaluate(step, 94.0)
    assert low.alert_type == "threshold_below"

    assert alert_rules.evaluate(step, 100.4) == []


def test_keywords_are_matched_case_insensitively():
    step = _step("text", alert_keywords=["bleeding", "chest pain"])

    (alert,) = alert_rules.evaluate(step, "Some BLEEDING and chest pain at night")
    assert alert.message == "Concerning keywords detected: bleeding, chest pain"
    assert alert.meta == {"keywords": ["bleeding", "chest pain"]}


def test_unknown_severity_is_a_configuration_error():
    step = _step("yes_no", concerning_if_yes=True, severity="apocalyptic")

    with pytest.raises(ConfigurationError):
        alert_rules.evaluate(step, "yes")
