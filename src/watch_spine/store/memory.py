"""In-process stores for tests, dry runs and single-instance development."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime

from watch_spine.store.models import LockRecord, Subject, WatchPatch, WatchState


class MemorySubjectStore:
    """Thread-safe dict-backed ``SubjectStore``."""

    def __init__(self, subjects: list[Subject] | None = None) -> None:
        self._lock = threading.Lock()
        self._subjects: dict[str, Subject] = {}
        self._settings: dict[str, str] = {}
        for subject in subjects or []:
            self._subjects[subject.id] = subject

    def get(self, subject_id: str) -> Subject | None:
        with self._lock:
            return self._subjects.get(subject_id)

    def save(self, subject: Subject) -> None:
        with self._lock:
            self._subjects[subject.id] = subject

    def patch_watch(self, subject_id: str, patch: WatchPatch) -> bool:
        with self._lock:
            current = self._subjects.get(subject_id)
            if current is None:
                return False
            self._subjects[subject_id] = replace(current, watch=current.watch.apply(patch))
            return True

    def compare_and_patch(
        self,
        subject_id: str,
        expected: WatchState,
        patch: WatchPatch,
    ) -> bool:
        with self._lock:
            current = self._subjects.get(subject_id)
            if current is None or current.watch != expected:
                return False
            self._subjects[subject_id] = replace(current, watch=current.watch.apply(patch))
            return True

    def query_due_for_ping(self, now: datetime, limit: int) -> list[Subject]:
        with self._lock:
            due = [
                s
                for s in self._subjects.values()
                if s.watch.enabled
                and not s.watch.awaiting_reply
                and s.watch.next_ping_at is not None
                and s.watch.next_ping_at <= now
            ]
        due.sort(key=lambda s: s.watch.next_ping_at)
        return due[:limit]

    def query_awaiting_reply(self, limit: int) -> list[Subject]:
        with self._lock:
            awaiting = [
                s for s in self._subjects.values() if s.watch.enabled and s.watch.awaiting_reply
            ]
        return awaiting[:limit]

    def query_unscheduled(self, limit: int) -> list[Subject]:
        with self._lock:
            unscheduled = [
                s
                for s in self._subjects.values()
                if s.watch.enabled and not s.watch.awaiting_reply and s.watch.next_ping_at is None
            ]
        unscheduled.sort(key=lambda s: s.id)
        return unscheduled[:limit]

    def scan(self, limit: int) -> list[Subject]:
        with self._lock:
            enabled = [s for s in self._subjects.values() if s.watch.enabled]
        enabled.sort(key=lambda s: s.id)
        return enabled[:limit]

    def get_setting(self, key: str) -> str | None:
        with self._lock:
            return self._settings.get(key)

    def put_setting(self, key: str, value: str | None) -> None:
        with self._lock:
            if value is None:
                self._settings.pop(key, None)
            else:
                self._settings[key] = value


class MemoryLockStore:
    """Thread-safe dict-backed ``LockStore``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: dict[str, LockRecord] = {}

    def try_acquire(self, name: str, holder: str, now: datetime, until: datetime) -> bool:
        with self._lock:
            existing = self._locks.get(name)
            if existing is not None and existing.is_active(now):
                return False
            self._locks[name] = LockRecord(name=name, holder=holder, acquired_at=now, until=until)
            return True

    def release(self, name: str, holder: str) -> bool:
        with self._lock:
            existing = self._locks.get(name)
            if existing is None or existing.holder != holder:
                return False
            del self._locks[name]
            return True

    def get(self, name: str) -> LockRecord | None:
        with self._lock:
            return self._locks.get(name)

    def list_active(self, now: datetime) -> list[LockRecord]:
        with self._lock:
            return sorted(
                (r for r in self._locks.values() if r.is_active(now)),
                key=lambda r: r.acquired_at,
            )

    def force_release(self, name: str) -> bool:
        """Drop a lock regardless of holder (operator recovery)."""
        with self._lock:
            return self._locks.pop(name, None) is not None
