"""Tests for LockManager."""

from datetime import timedelta

import pytest

from _support import FrozenClock
from watch_spine.core.errors import LockStateUnknownError, StoreUnavailableError
from watch_spine.scheduling import LockManager
from watch_spine.store import MemoryLockStore

TTL = timedelta(seconds=240)


class UnreachableLockStore(MemoryLockStore):
    def try_acquire(self, name, holder, now, until):
        raise StoreUnavailableError("lock store down")


class ReleaseFailsLockStore(MemoryLockStore):
    def release(self, name, holder):
        raise StoreUnavailableError("lock store down")


class TestTryRun:
    """Test guarded execution."""

    def test_held_lock_skips_action(self, lock_manager, lock_store, clock):
        """A lock held until now+100s prevents the action entirely."""
        lock_store.try_acquire("watch-tick", "other", clock.now, clock.now + timedelta(seconds=100))
        calls = []

        ran = lock_manager.try_run("watch-tick", TTL, lambda: calls.append(1))

        assert ran is False
        assert calls == []
        assert lock_store.get("watch-tick").holder == "other"

    def test_expired_lock_is_taken(self, lock_manager, lock_store, clock):
        """A lock that expired one second ago is recovered."""
        lock_store.try_acquire(
            "watch-tick", "crashed", clock.now - timedelta(seconds=241), clock.now - timedelta(seconds=1)
        )
        calls = []

        assert lock_manager.try_run("watch-tick", TTL, lambda: calls.append(1)) is True
        assert calls == [1]

    def test_released_after_action(self, lock_manager, clock):
        lock_manager.try_run("watch-tick", TTL, lambda: None)
        assert not lock_manager.is_locked("watch-tick")
        assert lock_manager.try_run("watch-tick", TTL, lambda: None) is True

    def test_released_when_action_raises(self, lock_manager):
        def boom():
            raise RuntimeError("batch crashed")

        with pytest.raises(RuntimeError):
            lock_manager.try_run("watch-tick", TTL, boom)
        assert not lock_manager.is_locked("watch-tick")

    def test_holders_are_unique_per_acquisition(self, lock_manager):
        first = lock_manager.acquire("watch-tick", TTL)
        assert first is not None
        assert lock_manager.acquire("watch-tick", TTL) is None
        assert lock_manager.get_lock_holder("watch-tick") == first
        assert first.startswith("test-instance:")


class TestFailClosed:
    """Test behavior when the lock store is unreachable."""

    def test_unknown_state_raises(self, clock):
        manager = LockManager(UnreachableLockStore(), instance_id="i", clock=clock)
        calls = []

        with pytest.raises(LockStateUnknownError):
            manager.try_run("watch-tick", TTL, lambda: calls.append(1))
        assert calls == []

    def test_release_failure_does_not_raise(self, clock):
        manager = LockManager(ReleaseFailsLockStore(), instance_id="i", clock=clock)
        calls = []

        assert manager.try_run("watch-tick", TTL, lambda: calls.append(1)) is True
        assert calls == [1]

    def test_release_failure_recovered_by_expiry(self):
        clock = FrozenClock()
        manager = LockManager(ReleaseFailsLockStore(), instance_id="i", clock=clock)
        manager.try_run("watch-tick", TTL, lambda: None)
        assert manager.is_locked("watch-tick")

        clock.advance(seconds=241)
        assert manager.try_run("watch-tick", TTL, lambda: None) is True


class TestAsync:
    """Test the async guard used by the scheduler."""

    @pytest.mark.asyncio
    async def test_try_run_async(self, lock_manager):
        calls = []

        async def action():
            calls.append(lock_manager.is_locked("watch-tick"))

        assert await lock_manager.try_run_async("watch-tick", TTL, action) is True
        assert calls == [True]
        assert not lock_manager.is_locked("watch-tick")


class TestInspection:
    """Test lock inspection and recovery."""

    def test_list_and_force_release(self, lock_manager):
        lock_manager.acquire("watch-tick", TTL)
        assert [r.name for r in lock_manager.list_active_locks()] == ["watch-tick"]

        assert lock_manager.force_release("watch-tick") is True
        assert lock_manager.list_active_locks() == []
