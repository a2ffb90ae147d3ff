# recovery_core/patients/phase.py
"""
Recovery phase classifier.

day = today - surgery_date in whole UTC days.
day >= 0 is post-op (surgery day counts as post-op), day < 0 is pre-op and
reports the days remaining as a negative offset. No surgery date means pre-op, day 0.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from recovery_core.common.dates import as_utc_date, days_between, utc_today


class RecoveryPhaseName:
    PRE_OP = "pre-op"
    POST_OP = "post-op"


@dataclass(frozen=True)
class RecoveryPhase:
    phase: str
    day: int

    @property
    def is_post_op(self) -> bool:
        return self.phase == RecoveryPhaseName.POST_OP

    def as_dict(self) -> dict:
        return {"phase": self.phase, "day": self.day}


def classify(surgery_date: Optional[date], today: Optional[date] = None) -> RecoveryPhase:
    if surgery_date is None:
        return RecoveryPhase(phase=RecoveryPhaseName.PRE_OP, day=0)

    surgery = as_utc_date(surgery_date)
    current = as_utc_date(today) if today is not None else utc_today()

    day = days_between(surgery, current)
    if day >= 0:
        return RecoveryPhase(phase=RecoveryPhaseName.POST_OP, day=day)
    return RecoveryPhase(phase=RecoveryPhaseName.PRE_OP, day=day)
