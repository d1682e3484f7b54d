"""
Clock and local-hour recurrence helpers.

Check-ins land on a fixed wall-clock hour in the subject's service timezone
(15:00 Asia/Tokyo by default), ``days_ahead`` calendar days after the
reference instant. Everything else in the watch core works on absolute
elapsed time in UTC.

DST behaviour (``zoneinfo`` semantics, ``fold=0``):
    - A wall-clock hour that does not exist (spring-forward gap) resolves
      with the pre-transition offset, i.e. it lands *after* the gap.
    - A wall-clock hour that occurs twice (fall-back overlap) resolves to
      the first occurrence.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta, tzinfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def next_occurrence_at_hour(
    instant: datetime,
    tz: tzinfo,
    hour: int,
    days_ahead: int,
) -> datetime:
    """Return the UTC instant of ``hour:00`` local time, ``days_ahead`` days after *instant*.

    The local calendar date of *instant* in *tz* is advanced by
    ``days_ahead`` days and the time of day replaced by ``hour:00:00``.

    Example:
        >>> from zoneinfo import ZoneInfo
        >>> start = datetime(2025, 9, 12, 1, 0, tzinfo=UTC)     # 10:00 JST
        >>> next_occurrence_at_hour(start, ZoneInfo("Asia/Tokyo"), 15, 3)
        datetime.datetime(2025, 9, 15, 6, 0, tzinfo=datetime.timezone.utc)
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in 0..23, got {hour}")

    local_date = ensure_utc(instant).astimezone(tz).date() + timedelta(days=days_ahead)
    local = datetime.combine(local_date, time(hour=hour), tzinfo=tz)
    return local.astimezone(UTC)


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours from *start* to *end* (negative if *end* is earlier)."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600


def to_iso(value: datetime | None) -> str | None:
    """Serialize an instant as a fixed-width ISO-8601 UTC string.

    Fixed width keeps stored values lexicographically ordered.
    """
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string written by :func:`to_iso`."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


__all__ = [
    "Clock",
    "utc_now",
    "ensure_utc",
    "next_occurrence_at_hour",
    "hours_between",
    "to_iso",
    "from_iso",
]
