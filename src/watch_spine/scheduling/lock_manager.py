"""Self-expiring lock manager for scheduler ticks.

Manifesto:
    Overlapping scheduler invocations must never run the same job at the
    same time, and the invocation may be a stateless cron process that
    never shuts down gracefully.  The lock manager provides an atomic
    acquire (compare-and-set on "absent or expired") with a ``until``
    deadline, so a crashed holder is recovered by the clock alone.

    Lock Flow::

        try_run("watch-tick", ttl, action)
            │
            ├── store.try_acquire(name, holder, now, now + ttl)
            │       ├── held and until > now  ──► return False (no side effect)
            │       └── absent or expired     ──► record written
            ├── action()
            └── store.release(name, holder)   (failure logged; expiry recovers)

    Fail closed: if the lock store cannot be reached, ``LockStateUnknownError``
    propagates and the caller skips the tick.  Running without knowing the
    lock state would risk a duplicate notification storm.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any
from uuid import uuid4

from watch_spine.core.errors import LockStateUnknownError, StoreUnavailableError
from watch_spine.core.logging import get_logger
from watch_spine.core.timeutil import Clock, utc_now
from watch_spine.store.models import LockRecord
from watch_spine.store.protocol import LockStore

logger = get_logger(__name__)


class LockManager:
    """Named, time-bounded mutual exclusion backed by a ``LockStore``.

    Example:
        >>> manager = LockManager(SqliteLockStore(conn), instance_id="cron-1")
        >>> ran = manager.try_run("watch-tick", timedelta(seconds=240), do_work)
        >>> if not ran:
        ...     print("Another invocation holds the lock")
    """

    def __init__(
        self,
        store: LockStore,
        instance_id: str | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize lock manager.

        Args:
            store: Lock persistence
            instance_id: Identifier for this scheduler process.
                        Auto-generated if not provided.
            clock: Source of "now" (injected in tests)
        """
        self.store = store
        self.instance_id = instance_id or str(uuid4())
        self.clock = clock

    # === Acquire / Release ===

    def acquire(self, name: str, ttl: timedelta) -> str | None:
        """Try to take the lock.

        Each acquisition gets its own holder token, so two overlapping
        ticks inside one process still exclude each other.

        Returns:
            The holder token if acquired, None if the lock is held.

        Raises:
            LockStateUnknownError: The lock store could not be consulted.
        """
        now = self.clock()
        holder = f"{self.instance_id}:{uuid4().hex[:12]}"
        try:
            acquired = self.store.try_acquire(name, holder, now, now + ttl)
        except StoreUnavailableError as e:
            raise LockStateUnknownError(name, cause=e) from e

        if acquired:
            logger.debug("lock_acquired", lock_name=name, holder=holder, ttl_s=ttl.total_seconds())
            return holder

        logger.info("lock_contended", lock_name=name)
        return None

    def release(self, name: str, holder: str) -> bool:
        """Release the lock held under *holder*.

        Never raises: if the delete fails, the lock's ``until`` deadline
        is the recovery path.
        """
        try:
            released = self.store.release(name, holder)
        except StoreUnavailableError as e:
            logger.error("lock_release_failed", lock_name=name, holder=holder, error=str(e))
            return False

        if released:
            logger.debug("lock_released", lock_name=name, holder=holder)
        else:
            logger.warning("lock_release_not_held", lock_name=name, holder=holder)
        return released

    # === Guarded execution ===

    def try_run(self, name: str, ttl: timedelta, action: Callable[[], Any]) -> bool:
        """Run *action* under the lock.

        Returns:
            True if the action ran, False if the lock was held elsewhere.
            Exceptions raised by *action* propagate after the lock is released.
        """
        holder = self.acquire(name, ttl)
        if holder is None:
            return False
        try:
            action()
        finally:
            self.release(name, holder)
        return True

    async def try_run_async(
        self,
        name: str,
        ttl: timedelta,
        action: Callable[[], Awaitable[Any]],
    ) -> bool:
        """Async variant of :meth:`try_run`."""
        holder = self.acquire(name, ttl)
        if holder is None:
            return False
        try:
            await action()
        finally:
            self.release(name, holder)
        return True

    # === Inspection / Maintenance ===

    def is_locked(self, name: str) -> bool:
        """Check whether *name* is currently held (not expired)."""
        record = self.store.get(name)
        return record is not None and record.is_active(self.clock())

    def get_lock_holder(self, name: str) -> str | None:
        record = self.store.get(name)
        if record is None or not record.is_active(self.clock()):
            return None
        return record.holder

    def list_active_locks(self) -> list[LockRecord]:
        return self.store.list_active(self.clock())

    def force_release(self, name: str) -> bool:
        """Drop a lock regardless of holder (use for recovery only)."""
        released = self.store.force_release(name)
        logger.warning("lock_force_released", lock_name=name, released=released)
        return released


__all__ = ["LockManager"]
