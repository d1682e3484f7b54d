"""Test helpers shared across the suite (clock and subject factories)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from watch_spine.store import Subject, WatchState

GROUP_ID = "C" + "0123456789abcdefABCDEF"
START = datetime(2025, 9, 12, 1, 0, tzinfo=UTC)  # 10:00 Asia/Tokyo


class FrozenClock:
    """Deterministic clock; call it to read, ``advance`` to move forward."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_subject(subject_id: str = "U1", *, enabled: bool = True, **watch: Any) -> Subject:
    """Build a subject with the given watch fields (enabled by default)."""
    profile = watch.pop("profile", {"displayName": f"Subject {subject_id}"})
    emergency = watch.pop("emergency_contact", {})
    return Subject(
        id=subject_id,
        watch=WatchState(enabled=enabled, **watch),
        profile=profile,
        emergency_contact=emergency,
    )
