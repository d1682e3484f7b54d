"""Tests for TargetSelector."""

from datetime import timedelta

import pytest

from _support import START, make_subject
from watch_spine.core.errors import StoreUnavailableError
from watch_spine.store import MemorySubjectStore
from watch_spine.watch import TargetSelector

NOW = START


class FlakyStore(MemorySubjectStore):
    """Memory store whose indexed queries (and optionally scan) fail."""

    def __init__(self, *, fail_due=False, fail_awaiting=False, fail_unscheduled=False, fail_scan=False):
        super().__init__()
        self.fail_due = fail_due
        self.fail_awaiting = fail_awaiting
        self.fail_unscheduled = fail_unscheduled
        self.fail_scan = fail_scan
        self.scan_limits: list[int] = []

    def query_due_for_ping(self, now, limit):
        if self.fail_due:
            raise StoreUnavailableError("index missing")
        return super().query_due_for_ping(now, limit)

    def query_awaiting_reply(self, limit):
        if self.fail_awaiting:
            raise StoreUnavailableError("index missing")
        return super().query_awaiting_reply(limit)

    def query_unscheduled(self, limit):
        if self.fail_unscheduled:
            raise StoreUnavailableError("index missing")
        return super().query_unscheduled(limit)

    def scan(self, limit):
        self.scan_limits.append(limit)
        if self.fail_scan:
            raise StoreUnavailableError("store down")
        return super().scan(limit)


def populate(store):
    store.save(make_subject("due", next_ping_at=NOW - timedelta(minutes=5)))
    store.save(make_subject("future", next_ping_at=NOW + timedelta(hours=1)))
    store.save(make_subject("unscheduled"))
    store.save(make_subject("awaiting", awaiting_reply=True, last_ping_at=NOW - timedelta(hours=2)))
    store.save(make_subject("disabled", enabled=False, next_ping_at=NOW))


class TestSelectDue:
    """Test the indexed path."""

    def test_union_of_due_and_awaiting(self, subject_store, selector):
        populate(subject_store)
        ids = sorted(s.id for s in selector.select_due(NOW))
        assert ids == ["awaiting", "due"]
        assert selector.fallback_count == 0

    def test_empty(self, selector):
        assert selector.select_due(NOW) == []

    def test_deduplicated_by_id(self):
        """A subject returned by both queries appears once."""

        class OverlappingStore(MemorySubjectStore):
            def query_awaiting_reply(self, limit):
                return self.query_due_for_ping(NOW, limit)

        store = OverlappingStore()
        store.save(make_subject("U1", next_ping_at=NOW))
        assert [s.id for s in TargetSelector(store).select_due(NOW)] == ["U1"]


class TestFallback:
    """Test the bounded scan used when an indexed query fails."""

    def test_due_fallback_same_predicate(self):
        store = FlakyStore(fail_due=True)
        populate(store)
        selector = TargetSelector(store, fallback_scan_limit=50)

        ids = sorted(s.id for s in selector.select_due(NOW))

        assert ids == ["awaiting", "due"]
        assert selector.fallback_count == 1
        assert store.scan_limits == [50]

    def test_both_fallbacks_counted(self):
        store = FlakyStore(fail_due=True, fail_awaiting=True)
        populate(store)
        selector = TargetSelector(store)

        ids = sorted(s.id for s in selector.select_due(NOW))

        assert ids == ["awaiting", "due"]
        assert selector.fallback_count == 2

    def test_fallback_is_bounded(self):
        store = FlakyStore(fail_due=True)
        for i in range(10):
            store.save(make_subject(f"U{i:02d}", next_ping_at=NOW))
        selector = TargetSelector(store, select_limit=100, fallback_scan_limit=4)

        assert len(selector.select_due(NOW)) == 4

    def test_missing_next_ping_is_not_due(self):
        store = FlakyStore(fail_due=True)
        store.save(make_subject("unscheduled"))
        assert TargetSelector(store).select_due(NOW) == []

    def test_scan_failure_propagates(self):
        store = FlakyStore(fail_due=True, fail_scan=True)
        with pytest.raises(StoreUnavailableError):
            TargetSelector(store).select_due(NOW)


class TestBackfill:
    """Test next-ping backfill for unscheduled subjects."""

    def test_backfills_only_unscheduled(self, subject_store, selector):
        populate(subject_store)
        target = NOW + timedelta(days=3)

        assert selector.backfill_next_ping(NOW, target) == 1

        assert subject_store.get("unscheduled").watch.next_ping_at == target
        assert subject_store.get("future").watch.next_ping_at == NOW + timedelta(hours=1)
        assert subject_store.get("awaiting").watch.next_ping_at is None
        assert subject_store.get("disabled").watch.next_ping_at == NOW

    def test_backfill_idempotent(self, subject_store, selector):
        populate(subject_store)
        selector.backfill_next_ping(NOW, NOW + timedelta(days=3))
        assert selector.backfill_next_ping(NOW, NOW + timedelta(days=4)) == 0

    def test_unscheduled_found_behind_many_scheduled(self, any_subject_store):
        """Subjects sorting after a full page of scheduled ones still get a next ping."""
        for i in range(250):
            any_subject_store.save(make_subject(f"A{i:04d}", next_ping_at=NOW + timedelta(days=1)))
        any_subject_store.save(make_subject("Z-unscheduled"))
        selector = TargetSelector(any_subject_store, select_limit=200)
        target = NOW + timedelta(days=3)

        assert selector.backfill_next_ping(NOW, target) == 1
        assert any_subject_store.get("Z-unscheduled").watch.next_ping_at == target

    def test_backfill_drains_in_batches(self, any_subject_store):
        for i in range(5):
            any_subject_store.save(make_subject(f"U{i}"))
        selector = TargetSelector(any_subject_store, select_limit=2)
        target = NOW + timedelta(days=3)

        assert [selector.backfill_next_ping(NOW, target) for _ in range(4)] == [2, 2, 1, 0]

    def test_backfill_query_fallback_counted(self):
        store = FlakyStore(fail_unscheduled=True)
        populate(store)
        selector = TargetSelector(store)

        assert selector.backfill_next_ping(NOW, NOW + timedelta(days=3)) == 1
        assert selector.fallback_count == 1
