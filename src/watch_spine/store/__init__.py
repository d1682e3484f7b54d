"""Subject and lock persistence for the watch core."""

from watch_spine.store.memory import MemoryLockStore, MemorySubjectStore
from watch_spine.store.models import (
    DELETE,
    WATCH_FIELDS,
    LockRecord,
    PatchOp,
    Subject,
    WatchPatch,
    WatchState,
)
from watch_spine.store.protocol import LockStore, SubjectStore
from watch_spine.store.sqlite import SqliteLockStore, SqliteSubjectStore, connect, init_schema

__all__ = [
    "DELETE",
    "WATCH_FIELDS",
    "LockRecord",
    "PatchOp",
    "Subject",
    "WatchPatch",
    "WatchState",
    "LockStore",
    "SubjectStore",
    "MemoryLockStore",
    "MemorySubjectStore",
    "SqliteLockStore",
    "SqliteSubjectStore",
    "connect",
    "init_schema",
]
