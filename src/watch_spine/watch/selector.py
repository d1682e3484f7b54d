"""
Target selection.

``select_due`` returns the union of subjects due for a fresh check-in and
subjects awaiting a reply, deduplicated by id. Each half uses its indexed
query; if that query fails, a bounded scan of enabled subjects is filtered
client-side with the same predicate. Every fallback is counted and logged,
since it points at a missing or stale index.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from watch_spine.core.errors import StoreUnavailableError
from watch_spine.core.logging import get_logger
from watch_spine.store.models import Subject
from watch_spine.store.protocol import SubjectStore

logger = get_logger(__name__)


def is_due_for_ping(subject: Subject, now: datetime) -> bool:
    w = subject.watch
    return w.enabled and not w.awaiting_reply and w.next_ping_at is not None and w.next_ping_at <= now


def is_awaiting_reply(subject: Subject) -> bool:
    return subject.watch.enabled and subject.watch.awaiting_reply


def is_unscheduled(subject: Subject) -> bool:
    w = subject.watch
    return w.enabled and not w.awaiting_reply and w.next_ping_at is None


class TargetSelector:
    """Finds the subjects a tick has to look at."""

    def __init__(
        self,
        store: SubjectStore,
        *,
        select_limit: int = 200,
        fallback_scan_limit: int = 500,
    ):
        self.store = store
        self.select_limit = select_limit
        self.fallback_scan_limit = fallback_scan_limit
        self.fallback_count = 0

    def _query(
        self,
        shape: str,
        indexed: Callable[[], list[Subject]],
        predicate: Callable[[Subject], bool],
    ) -> list[Subject]:
        try:
            return indexed()
        except StoreUnavailableError as e:
            self.fallback_count += 1
            logger.warning(
                "selector_fallback_scan",
                query=shape,
                scan_limit=self.fallback_scan_limit,
                error=str(e),
            )
        # The scan may fail too; that propagates and the tick is skipped.
        matches = [s for s in self.store.scan(self.fallback_scan_limit) if predicate(s)]
        return matches[: self.select_limit]

    def select_due(self, now: datetime) -> list[Subject]:
        """Subjects due for a ping plus subjects awaiting a reply, unique by id.

        Raises:
            StoreUnavailableError: Both the indexed query and the fallback scan failed.
        """
        due = self._query(
            "due_for_ping",
            lambda: self.store.query_due_for_ping(now, self.select_limit),
            lambda s: is_due_for_ping(s, now),
        )
        awaiting = self._query(
            "awaiting_reply",
            lambda: self.store.query_awaiting_reply(self.select_limit),
            is_awaiting_reply,
        )

        targets: dict[str, Subject] = {}
        for subject in (*due, *awaiting):
            targets.setdefault(subject.id, subject)
        logger.debug("targets_selected", due=len(due), awaiting=len(awaiting), total=len(targets))
        return list(targets.values())

    def backfill_next_ping(self, now: datetime, next_ping_at: datetime) -> int:
        """Schedule enabled subjects that are neither awaiting nor scheduled.

        Returns the number of subjects updated. Scheduled subjects drop out
        of the query, so each tick reaches the next batch.
        """
        unscheduled = self._query(
            "unscheduled",
            lambda: self.store.query_unscheduled(self.select_limit),
            is_unscheduled,
        )
        updated = 0
        for subject in unscheduled:
            if self.store.compare_and_patch(subject.id, subject.watch, {"next_ping_at": next_ping_at}):
                updated += 1
        if updated:
            logger.info("next_ping_backfilled", count=updated, next_ping_at=next_ping_at.isoformat())
        return updated


__all__ = ["TargetSelector", "is_awaiting_reply", "is_due_for_ping", "is_unscheduled"]
