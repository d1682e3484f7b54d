"""Escalation rate limiter."""

from __future__ import annotations

from datetime import datetime, timedelta

from watch_spine.store.models import Subject


class EscalationRateLimiter:
    """Bounds how often a responsible party hears about the same subject.

    Independent of the ping cycle: only ``last_notified_at`` and the
    configured minimum gap matter.
    """

    def __init__(self, min_gap: timedelta):
        self.min_gap = min_gap

    def may_notify(self, subject: Subject, now: datetime, channel_id: str | None) -> bool:
        """True if *channel_id* is set and the previous notice is old enough (or absent)."""
        if not channel_id:
            return False
        last = subject.watch.last_notified_at
        return last is None or now - last >= self.min_gap


__all__ = ["EscalationRateLimiter"]
