"""Watch scheduler service.

Manifesto:
    The service turns a bare timer into a safe batch run. The timer may fire
    from several processes at once, so every tick first takes the named
    self-expiring lock; whoever loses does nothing. Inside the lock the
    tick backfills unscheduled subjects, selects targets and runs each one
    through the state machine. One subject failing never stops the batch,
    and nothing retries locally: the next tick is the retry.

    tick()
      │
      ├── lock_manager.try_run_async("watch-tick", ttl, batch)
      │       ├── contended        ──► status "locked"        (no side effects)
      │       ├── store unreachable ─► status "lock_unknown"  (fail closed)
      │       └── acquired
      │             ├── selector.backfill_next_ping(now)
      │             ├── selector.select_due(now)
      │             └── for each subject:
      │                   machine.process(subject, now)
      │                   (StoreUnavailableError → subject skipped)
      └── stats updated, TickReport returned
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from watch_spine.core.errors import LockStateUnknownError, StoreUnavailableError
from watch_spine.core.logging import LogContext, get_logger
from watch_spine.core.settings import WatchSettings
from watch_spine.core.timeutil import Clock, utc_now
from watch_spine.scheduling.lock_manager import LockManager
from watch_spine.scheduling.protocol import SchedulerBackend
from watch_spine.watch.machine import Mode, TransitionOutcome, WatchStateMachine, find_inconsistency
from watch_spine.watch.selector import TargetSelector

logger = get_logger(__name__)


@dataclass
class SchedulerStats:
    """Counters accumulated across ticks."""

    tick_count: int = 0
    ticks_completed: int = 0
    ticks_locked: int = 0
    ticks_failed: int = 0
    pings: int = 0
    reminders: int = 0
    escalations: int = 0
    notifications_sent: int = 0
    notifications_suppressed: int = 0
    deliveries_failed: int = 0
    transitions_superseded: int = 0
    subjects_failed: int = 0
    inconsistencies: int = 0
    backfilled: int = 0
    fallback_scans: int = 0
    last_tick: datetime | None = None
    last_status: str | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["last_tick"] = self.last_tick.isoformat() if self.last_tick else None
        return result


@dataclass
class TickReport:
    """Outcome of one tick.

    ``status`` is one of ``completed``, ``locked``, ``lock_unknown`` or ``failed``.
    """

    tick_id: str
    started_at: datetime
    status: str = "pending"
    targets: int = 0
    backfilled: int = 0
    modes: Counter = field(default_factory=Counter)
    subjects_failed: int = 0
    error: str | None = None

    @property
    def ran(self) -> bool:
        return self.status in ("completed", "failed")

    @property
    def ok(self) -> bool:
        return self.status in ("completed", "locked")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick_id": self.tick_id,
            "started_at": self.started_at.isoformat(),
            "status": self.status,
            "targets": self.targets,
            "backfilled": self.backfilled,
            "modes": {m.value if isinstance(m, Mode) else m: n for m, n in self.modes.items()},
            "subjects_failed": self.subjects_failed,
            "error": self.error,
        }


@dataclass
class SchedulerHealth:
    """Health status for the scheduler service."""

    healthy: bool
    runner: str
    backend: dict[str, Any] | None
    active_locks: int
    stats: SchedulerStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "runner": self.runner,
            "backend": self.backend,
            "active_locks": self.active_locks,
            "stats": self.stats.to_dict(),
        }


class SchedulerService:
    """Lock-guarded batch evaluation of every watched subject.

    Example:
        >>> service = SchedulerService(settings, lock_manager, selector, machine)
        >>> report = service.run_once()
        >>> report.status
        'completed'
    """

    def __init__(
        self,
        settings: WatchSettings,
        lock_manager: LockManager,
        selector: TargetSelector,
        machine: WatchStateMachine,
        *,
        backend: SchedulerBackend | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings
        self.lock_manager = lock_manager
        self.selector = selector
        self.machine = machine
        self.backend = backend
        self.clock = clock

        self._stats = SchedulerStats()
        self._running = False

    # === Lifecycle ===

    def start(self) -> None:
        """Start ticking on the configured backend (internal runner)."""
        if self.backend is None:
            raise RuntimeError("No scheduler backend configured; use run_once() for external runners")
        if self._running:
            logger.warning("scheduler_already_running")
            return

        logger.info(
            "scheduler_starting",
            backend=self.backend.name,
            interval_s=self.settings.tick_interval_seconds,
        )
        self.backend.start(self.tick, self.settings.tick_interval_seconds)
        self._running = True

    def stop(self) -> None:
        if not self._running or self.backend is None:
            return
        self.backend.stop()
        self._running = False
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # === Tick Processing ===

    async def tick(self) -> TickReport:
        """Run one lock-guarded batch. Never raises."""
        report = TickReport(tick_id=uuid4().hex[:12], started_at=self.clock())
        self._stats.tick_count += 1
        self._stats.last_tick = report.started_at

        with LogContext(tick_id=report.tick_id):
            await self._guarded_tick(report)
        self._stats.last_status = report.status
        return report

    async def _guarded_tick(self, report: TickReport) -> None:
        try:
            ran = await self.lock_manager.try_run_async(
                self.settings.lock_name,
                self.settings.lock_ttl,
                lambda: self._run_batch(report),
            )
        except LockStateUnknownError as e:
            report.status = "lock_unknown"
            report.error = str(e)
            self._stats.ticks_failed += 1
            self._stats.last_error = str(e)
            logger.error("tick_skipped_lock_state_unknown", **e.to_dict())
            return
        except Exception as e:
            report.status = "failed"
            report.error = str(e)
            self._stats.ticks_failed += 1
            self._stats.last_error = str(e)
            logger.exception("tick_failed")
            return

        if not ran:
            report.status = "locked"
            self._stats.ticks_locked += 1
            logger.info("tick_skipped_locked", lock_name=self.settings.lock_name)
            return

        logger.info("tick_finished", **report.to_dict())

    def run_once(self) -> TickReport:
        """Synchronous single tick for the external (cron) runner."""
        return asyncio.run(self.tick())

    async def _run_batch(self, report: TickReport) -> None:
        now = self.clock()
        fallbacks_before = self.selector.fallback_count

        try:
            report.backfilled = self.selector.backfill_next_ping(
                now, self.machine.next_ping_after(now)
            )
            self._stats.backfilled += report.backfilled
        except StoreUnavailableError as e:
            logger.warning("backfill_failed", error=str(e))

        try:
            targets = self.selector.select_due(now)
        except StoreUnavailableError as e:
            report.status = "failed"
            report.error = str(e)
            self._stats.ticks_failed += 1
            self._stats.last_error = str(e)
            logger.error("target_selection_failed", **e.to_dict())
            return
        finally:
            self._stats.fallback_scans += self.selector.fallback_count - fallbacks_before

        report.targets = len(targets)
        if not targets:
            logger.debug("no_targets")

        for subject in targets:
            problem = find_inconsistency(subject)
            if problem is not None:
                self._stats.inconsistencies += 1
                report.modes[Mode.NOOP] += 1
                logger.warning("watch_state_inconsistent", **problem.to_dict())
                continue
            try:
                outcome = self.machine.process(subject, now)
            except StoreUnavailableError as e:
                report.subjects_failed += 1
                self._stats.subjects_failed += 1
                logger.error("subject_transition_failed", subject_id=subject.id, error=str(e))
                continue
            report.modes[outcome.mode] += 1
            self._record(outcome)

        report.status = "completed"
        self._stats.ticks_completed += 1

    def _record(self, outcome: TransitionOutcome) -> None:
        if outcome.mode is Mode.NOOP:
            return
        if not outcome.committed:
            self._stats.transitions_superseded += 1
            return

        if outcome.mode is Mode.PING:
            self._stats.pings += 1
        elif outcome.mode is Mode.REMIND:
            self._stats.reminders += 1
        elif outcome.mode is Mode.ESCALATE:
            self._stats.escalations += 1
            if outcome.notified:
                self._stats.notifications_sent += 1
            else:
                self._stats.notifications_suppressed += 1

        if outcome.delivery is not None and not outcome.delivery.success:
            self._stats.deliveries_failed += 1

    # === Health & Stats ===

    def health(self) -> SchedulerHealth:
        backend_health = self.backend.health() if self.backend is not None else None
        try:
            active_locks = len(self.lock_manager.list_active_locks())
        except StoreUnavailableError:
            active_locks = -1

        healthy = self._stats.last_status in (None, "completed", "locked") and active_locks >= 0
        if self.backend is not None:
            healthy = healthy and self._running and bool(backend_health and backend_health.get("healthy"))
        return SchedulerHealth(
            healthy=healthy,
            runner=self.settings.runner,
            backend=backend_health,
            active_locks=active_locks,
            stats=self._stats,
        )

    def get_stats(self) -> SchedulerStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = SchedulerStats()


__all__ = ["SchedulerHealth", "SchedulerService", "SchedulerStats", "TickReport"]
