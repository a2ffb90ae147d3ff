# recovery_core/forms/alert_rules.py
"""
Clinical alert predicates evaluated over a parsed form answer.

Rules are plain functions registered with ``@alert_rule``; each returns zero
or more AlertCandidate. Persisting the candidates is the caller's job.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List

from django.conf import settings

from recovery_core.alerts.models import AlertSeverity
from recovery_core.common.api.exceptions import ConfigurationError
from recovery_core.forms.extraction import ConversationalStep
from recovery_core.forms.models import QuestionType


@dataclass(frozen=True)
class AlertCandidate:
    alert_type: str
    severity: str
    message: str
    requires_immediate_action: bool = False
    notify_provider: bool = True
    meta: dict = field(default_factory=dict)


Rule = Callable[[ConversationalStep, Any], Iterable[AlertCandidate]]

_rules: List[Rule] = []


def alert_rule(fn: Rule) -> Rule:
    if fn not in _rules:
        _rules.append(fn)
    return fn


def registered_rules() -> List[Rule]:
    return list(_rules)


def _severity(step: ConversationalStep, default: str) -> str:
    severity = (step.clinical_alerts or {}).get("severity") or default
    if severity not in AlertSeverity.values:
        raise ConfigurationError(
            f"Unknown alert severity: {severity}",
            details={"step_id": step.step_id},
        )
    return severity


def _threshold(step: ConversationalStep, key: str):
    raw = step.clinical_alerts.get(key)
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Clinical alert '{key}' must be a number.",
            details={"step_id": step.step_id, "value": raw},
        )


@alert_rule
def pain_level(step: ConversationalStep, value: Any):
    if step.question_type != QuestionType.PAIN_SCALE or value is None:
        return
    high = settings.RECOVERY_PAIN_ALERT_HIGH
    medium = settings.RECOVERY_PAIN_ALERT_MEDIUM
    if value >= high:
        yield AlertCandidate(
            alert_type="high_pain_level",
            severity=AlertSeverity.HIGH,
            message=f"Patient reported severe pain level: {value}/10",
            requires_immediate_action=True,
            meta={"pain_level": value, "threshold": high},
        )
    elif value >= medium:
        yield AlertCandidate(
            alert_type="moderate_pain_level",
            severity=AlertSeverity.MEDIUM,
            message=f"Patient reported moderate pain level: {value}/10",
            meta={"pain_level": value, "threshold": medium},
        )


@alert_rule
def concerning_symptom(step: ConversationalStep, value: Any):
    rules = step.clinical_alerts
    if step.question_type != QuestionType.YES_NO or not rules.get("concerning_if_yes"):
        return
    if value == "yes":
        yield AlertCandidate(
            alert_type="concerning_symptom",
            severity=_severity(step, AlertSeverity.MEDIUM),
            message=rules.get("message") or f"Patient answered yes to: {step.question_text}",
            requires_immediate_action=bool(rules.get("immediate_action", False)),
        )


@alert_rule
def numeric_threshold(step: ConversationalStep, value: Any):
    if step.question_type not in (QuestionType.NUMBER, QuestionType.SCALE) or value is None:
        return
    high = _threshold(step, "max_threshold")
    low = _threshold(step, "min_threshold")
    if high is not None and value > high:
        yield AlertCandidate(
            alert_type="threshold_exceeded",
            severity=_severity(step, AlertSeverity.MEDIUM),
            message=step.clinical_alerts.get("message") or f"Value {value:g} exceeds threshold {high:g}",
            requires_immediate_action=bool(step.clinical_alerts.get("immediate_action", False)),
            meta={"value": value, "threshold": high},
        )
    if low is not None and value < low:
        yield AlertCandidate(
            alert_type="threshold_below",
            severity=_severity(step, AlertSeverity.MEDIUM),
            message=step.clinical_alerts.get("message") or f"Value {value:g} below threshold {low:g}",
            requires_immediate_action=bool(step.clinical_alerts.get("immediate_action", False)),
            meta={"value": value, "threshold": low},
        )


@alert_rule
def keyword_detected(step: ConversationalStep, value: Any):
    keywords = step.clinical_alerts.get("alert_keywords") or []
    if step.question_type not in (QuestionType.TEXT, QuestionType.TEXTAREA) or not keywords:
        return
    if not isinstance(keywords, list):
        raise ConfigurationError("alert_keywords must be a list.", details={"step_id": step.step_id})
    text = str(value or "").lower()
    found = [k for k in keywords if str(k).lower() in text]
    if found:
        yield AlertCandidate(
            alert_type="keyword_detected",
            severity=_severity(step, AlertSeverity.MEDIUM),
            message=f"Concerning keywords detected: {', '.join(found)}",
            requires_immediate_action=bool(step.clinical_alerts.get("immediate_action", False)),
            meta={"keywords": found},
        )


def evaluate(step: ConversationalStep, value: Any) -> list[AlertCandidate]:
    candidates: list[AlertCandidate] = []
    for rule in registered_rules():
        candidates.extend(rule(step, value) or ())
    return candidates
