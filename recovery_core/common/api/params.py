# recovery_core/common/api/params.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from django.utils.dateparse import parse_date as django_parse_date
from rest_framework.exceptions import NotFound, ValidationError


def parse_uuid(value, field_name: str) -> UUID:
    """Body/query UUIDs: malformed -> 400."""
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError({field_name: "Invalid UUID."})


def parse_optional_uuid(value, field_name: str) -> UUID | None:
    if value in (None, ""):
        return None
    return parse_uuid(value, field_name)


def pk_or_404(pk, what: str = "Resource") -> UUID:
    """Path UUIDs: malformed -> 404, same as a missing (or foreign-tenant) row."""
    try:
        return UUID(str(pk))
    except (TypeError, ValueError):
        raise NotFound(f"{what} not found.")


def parse_iso_date(value, field_name: str) -> date | None:
    if value in (None, ""):
        return None
    try:
        parsed = django_parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({field_name: "Invalid date (YYYY-MM-DD expected)."})
    return parsed


def parse_int(value, field_name: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({field_name: "Invalid integer."})
