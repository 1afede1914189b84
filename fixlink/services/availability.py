import math
from datetime import datetime, timezone

from fixlink.services.errors import FixLinkValidationError


MIN_DURATION_HOURS = 0.5
MAX_DURATION_HOURS = 24.0


def as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken to be UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_future(requested: datetime, now: datetime) -> bool:
    return as_utc(requested) > as_utc(now)


def hours_until(requested: datetime, now: datetime) -> float:
    return (as_utc(requested) - as_utc(now)).total_seconds() / 3600


def validate_duration(duration: float) -> float:
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise FixLinkValidationError("Duration must be a number of hours")
    if math.isnan(duration) or not MIN_DURATION_HOURS <= duration <= MAX_DURATION_HOURS:
        raise FixLinkValidationError(
            f"Duration must be between {MIN_DURATION_HOURS} and {MAX_DURATION_HOURS} hours"
        )
    return float(duration)


def validate_slot(scheduled_date: datetime, duration: float, now: datetime) -> None:
    """Reject slots that are not strictly in the future or have an out-of-range duration.

    The provider's weekly availability calendar is not consulted here.
    """
    validate_duration(duration)
    if not is_future(scheduled_date, now):
        raise FixLinkValidationError("Booking date must be in the future")
