"""
Storage contracts for the watch core.

The subject store is shared with, and owned by, the onboarding subsystem.
The watch core only ever merge-patches the ``watch`` sub-tree of a subject;
it never rewrites ``profile`` or ``emergency_contact``.

    SubjectStore
    ├── get(subject_id)                         point read
    ├── save(subject)                           seed / enrollment (external)
    ├── patch_watch(subject_id, patch)          unconditional merge
    ├── compare_and_patch(id, expected, patch)  atomic conditional merge
    ├── query_due_for_ping(now, limit)          indexed: !awaiting AND next_ping_at <= now
    ├── query_awaiting_reply(limit)             indexed: awaiting
    ├── scan(limit)                             bounded full scan (fallback)
    └── get_setting / put_setting               system key/value

    LockStore
    ├── try_acquire(name, holder, now, until)   CAS on "absent or expired"
    ├── release(name, holder)
    ├── force_release(name)
    ├── get(name)
    └── list_active(now)

Every method raises ``StoreUnavailableError`` when the backend cannot be
reached; no method retries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from watch_spine.store.models import LockRecord, Subject, WatchPatch, WatchState


@runtime_checkable
class SubjectStore(Protocol):
    """Document-per-subject store keyed by subject id."""

    def get(self, subject_id: str) -> Subject | None:
        ...

    def save(self, subject: Subject) -> None:
        ...

    def patch_watch(self, subject_id: str, patch: WatchPatch) -> bool:
        """Merge *patch* into the watch sub-tree. False if the subject is unknown."""
        ...

    def compare_and_patch(
        self,
        subject_id: str,
        expected: WatchState,
        patch: WatchPatch,
    ) -> bool:
        """Merge *patch* only if the stored watch state still equals *expected*.

        The comparison and the write happen as one atomic operation.
        Returns False when the state moved on (another invocation won).
        """
        ...

    def query_due_for_ping(self, now: datetime, limit: int) -> list[Subject]:
        ...

    def query_awaiting_reply(self, limit: int) -> list[Subject]:
        ...

    def query_unscheduled(self, limit: int) -> list[Subject]:
        """Enabled subjects neither awaiting a reply nor holding a ``next_ping_at``."""
        ...

    def scan(self, limit: int) -> list[Subject]:
        ...

    def get_setting(self, key: str) -> str | None:
        ...

    def put_setting(self, key: str, value: str | None) -> None:
        ...


@runtime_checkable
class LockStore(Protocol):
    """Backing store for self-expiring named locks."""

    def try_acquire(self, name: str, holder: str, now: datetime, until: datetime) -> bool:
        """Write a lock record if none exists or the existing one expired at or before *now*."""
        ...

    def release(self, name: str, holder: str) -> bool:
        ...

    def force_release(self, name: str) -> bool:
        """Drop a lock regardless of holder (operator recovery)."""
        ...

    def get(self, name: str) -> LockRecord | None:
        ...

    def list_active(self, now: datetime) -> list[LockRecord]:
        ...


__all__ = ["SubjectStore", "LockStore"]
