# recovery_core/patients/tests/test_recovery_phase.py
from datetime import date, datetime, timedelta, timezone

import pytest

from recovery_core.patients.phase import RecoveryPhaseName, classify

SURGERY = date(2025, 1, 10)


@pytest.mark.parametrize("today", [date(1999, 1, 1), SURGERY, date(2030, 12, 31), None])
def test_no_surgery_date_is_pre_op_day_zero(today):
    result = classify(None, today)
    assert result.phase == RecoveryPhaseName.PRE_OP
    assert result.day == 0


def test_surgery_day_counts_as_post_op():
    result = classify(SURGERY, SURGERY)
    assert result.phase == RecoveryPhaseName.POST_OP
    assert result.day == 0


def test_pre_op_reports_negative_days_remaining():
    result = classify(SURGERY, SURGERY - timedelta(days=5))
    assert result.phase == RecoveryPhaseName.PRE_OP
    assert result.day == -5


def test_day_is_monotonic_in_today():
    previous = None
    for offset in range(-40, 41):
        result = classify(SURGERY, SURGERY + timedelta(days=offset))
        if previous is not None:
            assert result.day >= previous.day
            # once post-op, always post-op
            assert not (previous.is_post_op and not result.is_post_op)
        previous = result


def test_aware_datetimes_are_compared_as_utc_dates():
    # 23:30 at UTC-05:00 is already the next UTC day
    late_evening = datetime(2025, 1, 9, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert classify(SURGERY, late_evening).day == 0


@pytest.mark.django_db
def test_patient_phase_endpoint(surgeon_client, patient):
    res = surgeon_client.get(f"/api/v1/patients/{patient.id}/phase/")
    assert res.status_code == 200

    body = res.json()
    assert body["patient_id"] == str(patient.id)
    assert body["phase"] == "post-op"
    assert body["day"] > 0
