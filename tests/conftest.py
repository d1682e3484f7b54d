"""
Shared pytest fixtures for watch-spine tests.

This module provides:
- A frozen, manually advanced clock
- Settings with deterministic thresholds and a valid escalation group
- In-memory SQLite subject and lock stores
- A recording delivery channel and the components wired around it

Usage:
    def test_something(machine, subject_store, clock):
        subject_store.save(make_subject("U1", awaiting_reply=True, last_ping_at=clock.now))
        ...
"""

from __future__ import annotations

import pytest

from _support import GROUP_ID, FrozenClock
from watch_spine.core.settings import WatchSettings
from watch_spine.notify import NotificationDispatcher, RecordingChannel
from watch_spine.scheduling import LockManager, SchedulerService
from watch_spine.store import (
    MemoryLockStore,
    MemorySubjectStore,
    SqliteLockStore,
    SqliteSubjectStore,
    connect,
)
from watch_spine.watch import (
    ResponsiblePartyResolver,
    TargetSelector,
    WatchStateMachine,
)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings() -> WatchSettings:
    """Default thresholds (24h / 29h / 1h), Asia/Tokyo 15:00, escalation group set."""
    return WatchSettings(
        _env_file=None,
        responsible_party_id=GROUP_ID,
        log_level="silent",
    )


@pytest.fixture
def db_conn():
    """In-memory SQLite database with the watch schema applied."""
    conn = connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def subject_store(db_conn) -> SqliteSubjectStore:
    return SqliteSubjectStore(db_conn)


@pytest.fixture
def lock_store(db_conn) -> SqliteLockStore:
    return SqliteLockStore(db_conn)


@pytest.fixture(params=["sqlite", "memory"])
def any_subject_store(request, db_conn):
    """Both subject store backends, for contract tests."""
    if request.param == "sqlite":
        return SqliteSubjectStore(db_conn)
    return MemorySubjectStore()


@pytest.fixture(params=["sqlite", "memory"])
def any_lock_store(request, db_conn):
    """Both lock store backends, for contract tests."""
    if request.param == "sqlite":
        return SqliteLockStore(db_conn)
    return MemoryLockStore()


@pytest.fixture
def lock_manager(lock_store, clock) -> LockManager:
    return LockManager(lock_store, instance_id="test-instance", clock=clock)


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def dispatcher(channel) -> NotificationDispatcher:
    return NotificationDispatcher(channel)


@pytest.fixture
def resolver(subject_store, settings) -> ResponsiblePartyResolver:
    return ResponsiblePartyResolver(subject_store, settings.configured_responsible_party)


@pytest.fixture
def machine(subject_store, dispatcher, settings, resolver) -> WatchStateMachine:
    return WatchStateMachine(subject_store, dispatcher, settings, resolver=resolver)


@pytest.fixture
def selector(subject_store) -> TargetSelector:
    return TargetSelector(subject_store, select_limit=200, fallback_scan_limit=500)


@pytest.fixture
def service(settings, lock_manager, selector, machine, clock) -> SchedulerService:
    return SchedulerService(settings, lock_manager, selector, machine, clock=clock)
