"""Lock-guarded tick scheduling for the watch service.

Overlapping timer invocations (two cron pods, a redeploy while a tick is
running, a slow batch overrunning the interval) must never evaluate the
same subjects twice. Every tick therefore runs under a named,
self-expiring lock, and each subject transition is a compare-and-patch.

Quick Start:
    >>> from watch_spine.core.settings import WatchSettings
    >>> from watch_spine.scheduling import create_scheduler
    >>>
    >>> scheduler = create_scheduler(WatchSettings())
    >>> scheduler.run_once()        # external runner (cron)
    >>> scheduler.start()           # internal runner (thread backend)

Guardrails:
    ❌ Running a tick without holding the lock
    ❌ Running a tick when the lock state is unknown
    ❌ Sending before the subject's transition is committed
"""

from __future__ import annotations

import sqlite3

from watch_spine.core.settings import WatchSettings
from watch_spine.core.timeutil import Clock, utc_now
from watch_spine.notify.dispatcher import NotificationDispatcher
from watch_spine.notify.protocol import DeliveryChannel
from watch_spine.scheduling.lock_manager import LockManager
from watch_spine.scheduling.protocol import BackendHealth, SchedulerBackend, TickCallback
from watch_spine.scheduling.service import (
    SchedulerHealth,
    SchedulerService,
    SchedulerStats,
    TickReport,
)
from watch_spine.scheduling.thread_backend import ThreadSchedulerBackend

__all__ = [
    "BackendHealth",
    "LockManager",
    "SchedulerBackend",
    "SchedulerHealth",
    "SchedulerService",
    "SchedulerStats",
    "ThreadSchedulerBackend",
    "TickCallback",
    "TickReport",
    "build_channel",
    "create_scheduler",
]


def build_channel(settings: WatchSettings) -> DeliveryChannel:
    """LINE push when an access token is configured, console output otherwise."""
    from watch_spine.notify.channels import ConsoleChannel, LinePushChannel

    if settings.line_channel_access_token:
        return LinePushChannel(
            settings.line_channel_access_token,
            timeout=settings.delivery_timeout_seconds,
        )
    return ConsoleChannel()


def create_scheduler(
    settings: WatchSettings,
    *,
    conn: sqlite3.Connection | None = None,
    channel: DeliveryChannel | None = None,
    clock: Clock = utc_now,
    instance_id: str | None = None,
) -> SchedulerService:
    """Wire stores, lock manager, selector, state machine and backend together.

    Args:
        settings: Validated settings
        conn: SQLite connection (opened from ``settings.database`` if omitted)
        channel: Delivery channel (see :func:`build_channel`)
        clock: Source of "now"
        instance_id: Lock holder prefix for this process

    Returns:
        Configured SchedulerService; it has a thread backend only when
        ``settings.runner`` is ``internal``.
    """
    from watch_spine.store.sqlite import SqliteLockStore, SqliteSubjectStore, connect
    from watch_spine.watch.machine import WatchStateMachine
    from watch_spine.watch.selector import TargetSelector

    conn = conn or connect(settings.database)
    subjects = SqliteSubjectStore(conn)
    lock_manager = LockManager(SqliteLockStore(conn), instance_id=instance_id, clock=clock)
    dispatcher = NotificationDispatcher(channel or build_channel(settings))
    selector = TargetSelector(
        subjects,
        select_limit=settings.select_limit,
        fallback_scan_limit=settings.fallback_scan_limit,
    )
    machine = WatchStateMachine(subjects, dispatcher, settings)
    backend = ThreadSchedulerBackend() if settings.runner.lower() == "internal" else None

    return SchedulerService(
        settings,
        lock_manager,
        selector,
        machine,
        backend=backend,
        clock=clock,
    )
