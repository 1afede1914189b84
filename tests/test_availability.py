from datetime import datetime, timedelta, timezone

import pytest

from fixlink.services.availability import hours_until, is_future, validate_duration, validate_slot
from fixlink.services.errors import FixLinkValidationError


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_is_future_is_strict():
    assert is_future(NOW + timedelta(seconds=1), NOW)
    assert not is_future(NOW, NOW)
    assert not is_future(NOW - timedelta(days=1), NOW)


def test_naive_datetimes_are_utc():
    assert is_future(datetime(2026, 3, 1, 10, 0), NOW)
    assert hours_until(datetime(2026, 3, 2, 9, 0), NOW) == 24


def test_offset_datetimes_are_compared_in_utc():
    dubai = timezone(timedelta(hours=4))
    # 12:00 in Dubai is 08:00 UTC, an hour before NOW.
    assert not is_future(datetime(2026, 3, 1, 12, 0, tzinfo=dubai), NOW)


@pytest.mark.parametrize("duration", [0.5, 1, 2.5, 24])
def test_duration_bounds_accept(duration):
    assert validate_duration(duration) == float(duration)


@pytest.mark.parametrize("duration", [0, 0.25, 24.5, -1, float("nan"), True, "2"])
def test_duration_bounds_reject(duration):
    with pytest.raises(FixLinkValidationError):
        validate_duration(duration)


def test_validate_slot_rejects_past_date():
    with pytest.raises(FixLinkValidationError, match="future"):
        validate_slot(NOW - timedelta(minutes=5), 1.0, NOW)


def test_validate_slot_accepts_future_date():
    validate_slot(NOW + timedelta(hours=2), 1.0, NOW)
