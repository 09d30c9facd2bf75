"""Reservation Scheduling Rules — interval validation, overlap test, and pricing.

Invariants:
    - Intervals are half-open [start, end): end1 == start2 is NOT an overlap
    - All instants are timezone-aware and normalized to UTC before comparison
    - total_amount = hourly_rate * duration_hours, quantized to cents, computed once
    - Pure functions: the shell loads existing intervals and applies the result

Design Decisions:
    - One overlap predicate (a.start < b.end and b.start < a.end) instead of three
      OR-ed cases: it is equivalent to "start inside, end inside, or containment"
      and the SQL filter in reservation_scheduler uses the same shape
    - Decimal arithmetic: money never passes through float
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from marketcore.core.errors import InputValidationError


CENTS = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)


def ensure_utc(value: datetime, field: str) -> datetime:
    """Reject naive datetimes, normalize aware ones to UTC."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise InputValidationError(
            f"{field} must be a timezone-aware UTC instant", field,
        )
    return value.astimezone(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to values read back from stores that drop tzinfo (SQLite)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_interval(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """Normalize both instants and require end > start."""
    start = ensure_utc(start, "start")
    end = ensure_utc(end, "end")
    if end <= start:
        raise InputValidationError("end must be after start", "end")
    return start, end


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime,
) -> bool:
    """Half-open overlap test."""
    return a_start < b_end and b_start < a_end


def find_conflict(
    existing: Iterable[tuple[datetime, datetime]],
    start: datetime, end: datetime,
) -> tuple[datetime, datetime] | None:
    """Return the first existing interval overlapping [start, end), if any."""
    for other_start, other_end in existing:
        if intervals_overlap(
            start, end, as_utc(other_start), as_utc(other_end),
        ):
            return other_start, other_end
    return None


def duration_hours(start: datetime, end: datetime) -> Decimal:
    seconds = Decimal(str((end - start).total_seconds()))
    return seconds / SECONDS_PER_HOUR


def compute_total_amount(
    hourly_rate: Decimal, start: datetime, end: datetime,
) -> Decimal:
    """Price a reservation at the rate captured at booking time."""
    return (hourly_rate * duration_hours(start, end)).quantize(
        CENTS, rounding=ROUND_HALF_UP,
    )


def validate_hourly_rate(rate: Decimal) -> Decimal:
    if rate <= 0:
        raise InputValidationError("hourly_rate must be positive", "hourly_rate")
    return rate.quantize(CENTS, rounding=ROUND_HALF_UP)
