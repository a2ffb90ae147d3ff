# recovery_core/forms/validation.py
"""
Per-type answer validation for a conversational step.

Expected failures are returned as ValidationResult(is_valid=False, error=...).
Only rule definitions that cannot be applied (non-numeric bounds, a broken
regex) raise ConfigurationError.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from recovery_core.common.api.exceptions import ConfigurationError
from recovery_core.forms.extraction import ConversationalStep
from recovery_core.forms.models import QuestionType

REQUIRED_MSG = "This question is required."
INVALID_FORMAT_MSG = "Invalid format."

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\d{3}-?\d{3}-?\d{4}$")

YES_NO_VALUES = {"yes", "no", "y", "n", "true", "false"}

SCALE_MIN = 0
SCALE_MAX = 10


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {"is_valid": self.is_valid, "error": self.error}


OK = ValidationResult(is_valid=True)


def _fail(message: str) -> ValidationResult:
    return ValidationResult(is_valid=False, error=message)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def _rule_number(step: ConversationalStep, key: str) -> Optional[float]:
    raw = step.validation_rules.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ConfigurationError(
            f"Validation rule '{key}' must be a number.",
            details={"step_id": step.step_id, "rule": key, "value": raw},
        )
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Validation rule '{key}' must be a number.",
            details={"step_id": step.step_id, "rule": key, "value": raw},
        )


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(_as_text(value))
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _check_length(step: ConversationalStep, text: str) -> ValidationResult:
    min_length = _rule_number(step, "min_length")
    max_length = _rule_number(step, "max_length")
    if min_length is not None and len(text) < min_length:
        return _fail(f"Please enter at least {int(min_length)} characters.")
    if max_length is not None and len(text) > max_length:
        return _fail(f"Please enter no more than {int(max_length)} characters.")
    return OK


def _check_bounds(step: ConversationalStep, number: float) -> ValidationResult:
    low = _rule_number(step, "min")
    high = _rule_number(step, "max")
    if low is not None and number < low:
        return _fail(f"Value must be at least {low:g}.")
    if high is not None and number > high:
        return _fail(f"Value must be no more than {high:g}.")
    return OK


def _check_pattern(step: ConversationalStep, text: str) -> ValidationResult:
    pattern = step.validation_rules.get("pattern")
    if not pattern:
        return OK
    if not isinstance(pattern, str):
        raise ConfigurationError(
            "Validation rule 'pattern' must be a string.",
            details={"step_id": step.step_id},
        )
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(
            f"Validation rule 'pattern' is not a valid regular expression: {exc}",
            details={"step_id": step.step_id, "pattern": pattern},
        )
    if compiled.search(text) is None:
        return _fail(step.validation_rules.get("message") or INVALID_FORMAT_MSG)
    return OK


def _option_values(step: ConversationalStep) -> list[str]:
    values = []
    for option in step.options:
        if isinstance(option, dict):
            values.append(str(option.get("value", option.get("label", ""))))
        else:
            values.append(str(option))
    return values


def _validate_text(step, value) -> ValidationResult:
    text = _as_text(value)
    return _check_length(step, text)


def _validate_number(step, value) -> ValidationResult:
    number = _to_number(value)
    if number is None:
        return _fail("Please enter a valid number.")
    return _check_bounds(step, number)


def _validate_scale(step, value) -> ValidationResult:
    number = _to_number(value)
    if number is None or number != int(number):
        return _fail(f"Please enter a whole number from {SCALE_MIN} to {SCALE_MAX}.")
    low = _rule_number(step, "min")
    high = _rule_number(step, "max")
    low = SCALE_MIN if low is None else low
    high = SCALE_MAX if high is None else high
    if number < low or number > high:
        return _fail(f"Please enter a number from {low:g} to {high:g}.")
    return OK


def _validate_yes_no(step, value) -> ValidationResult:
    if _as_text(value).lower() not in YES_NO_VALUES:
        return _fail("Please answer Yes or No.")
    return OK


def _validate_single_choice(step, value) -> ValidationResult:
    allowed = _option_values(step)
    if allowed and _as_text(value) not in allowed:
        return _fail("Please choose one of the listed options.")
    return OK


def _validate_multiple_choice(step, value) -> ValidationResult:
    selected = value if isinstance(value, (list, tuple)) else _as_text(value).split(",")
    selected = [_as_text(v) for v in selected if not is_blank(v)]
    allowed = _option_values(step)
    if allowed:
        unknown = [v for v in selected if v not in allowed]
        if unknown:
            return _fail(f"Invalid option(s): {', '.join(unknown)}.")
    return OK


def _validate_date(step, value) -> ValidationResult:
    try:
        date.fromisoformat(_as_text(value)[:10])
    except ValueError:
        return _fail("Please enter a valid date (YYYY-MM-DD).")
    return OK


def _validate_email(step, value) -> ValidationResult:
    if not EMAIL_RE.match(_as_text(value)):
        return _fail("Please enter a valid email address.")
    return OK


def _validate_phone(step, value) -> ValidationResult:
    if not PHONE_RE.match(_as_text(value)):
        return _fail("Please enter a valid phone number (e.g. 555-123-4567).")
    return OK


_VALIDATORS = {
    QuestionType.TEXT: _validate_text,
    QuestionType.TEXTAREA: _validate_text,
    QuestionType.NUMBER: _validate_number,
    QuestionType.SCALE: _validate_scale,
    QuestionType.PAIN_SCALE: _validate_scale,
    QuestionType.YES_NO: _validate_yes_no,
    QuestionType.SINGLE_CHOICE: _validate_single_choice,
    QuestionType.MULTIPLE_CHOICE: _validate_multiple_choice,
    QuestionType.DATE: _validate_date,
    QuestionType.EMAIL: _validate_email,
    QuestionType.PHONE: _validate_phone,
}


def validate(step: ConversationalStep, response: Any) -> ValidationResult:
    if not isinstance(step.validation_rules, dict):
        raise ConfigurationError("Validation rules must be a JSON object.", details={"step_id": step.step_id})

    if is_blank(response):
        return _fail(REQUIRED_MSG) if step.is_required else OK

    validator = _VALIDATORS.get(step.question_type)
    if validator is None:
        raise ConfigurationError(
            f"Unsupported question type: {step.question_type}",
            details={"step_id": step.step_id},
        )

    result = validator(step, response)
    if not result.is_valid:
        return result

    if not isinstance(response, (list, tuple, dict)):
        return _check_pattern(step, _as_text(response))
    return OK
