"""
SQLite-backed subject and lock stores.

Atomicity comes from SQLite's single writer:

    compare_and_patch:  BEGIN IMMEDIATE, read the row, compare parsed state, write, commit
    lock acquire:       DELETE expired row, INSERT OR IGNORE, commit; rowcount tells who won

Both hold across processes sharing one file. Timestamps are compared as
instants, never as stored strings, because onboarding may write the same
record in another valid ISO-8601 form. ``compare_and_patch`` rewrites the
whole watch state in canonical form.

Stores opened on one connection share that connection's lock.
All ``sqlite3.Error``s surface as ``StoreUnavailableError``.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from importlib import resources
from pathlib import Path
from typing import Any

from watch_spine.core.errors import StoreUnavailableError
from watch_spine.core.logging import get_logger
from watch_spine.core.protocols import Connection
from watch_spine.core.timeutil import from_iso, to_iso, utc_now
from watch_spine.store.models import (
    DELETE,
    WATCH_FIELDS,
    LockRecord,
    Subject,
    WatchPatch,
    WatchState,
)

logger = get_logger(__name__)

_BOOL_FIELDS = ("enabled", "awaiting_reply")

_SUBJECT_COLUMNS = (
    "subject_id, enabled, awaiting_reply, next_ping_at, last_ping_at, "
    "last_reminder_at, last_notified_at, last_reply_at, profile, emergency_contact"
)


class WatchConnection(sqlite3.Connection):
    """sqlite3 connection carrying the lock every store on it serializes through."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.lock = threading.RLock()


def connect(database: str | Path = ":memory:") -> WatchConnection:
    """Open a connection usable from the scheduler thread and apply the schema."""
    if str(database) != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        str(database),
        timeout=5.0,
        check_same_thread=False,
        factory=WatchConnection,
    )
    init_schema(conn)
    return conn


_FOREIGN_CONNECTION_LOCK = threading.RLock()


def connection_lock(conn: Connection) -> threading.RLock:
    """The lock shared by all stores on *conn*.

    Connections from :func:`connect` carry their own. Connections opened
    elsewhere all share one process-wide lock.
    """
    return getattr(conn, "lock", None) or _FOREIGN_CONNECTION_LOCK


def init_schema(conn: sqlite3.Connection) -> None:
    """Create watch tables and indexes if they do not exist."""
    sql = resources.files("watch_spine.store").joinpath("schema/01_watch.sql").read_text()
    conn.executescript(sql)
    conn.commit()


def _to_db(key: str, value: Any) -> Any:
    if value is DELETE:
        return 0 if key in _BOOL_FIELDS else None
    if key in _BOOL_FIELDS:
        return 1 if value else 0
    if isinstance(value, datetime):
        return to_iso(value)
    return value


def _row_to_subject(row: tuple) -> Subject:
    return Subject(
        id=row[0],
        watch=WatchState(
            enabled=bool(row[1]),
            awaiting_reply=bool(row[2]),
            next_ping_at=from_iso(row[3]),
            last_ping_at=from_iso(row[4]),
            last_reminder_at=from_iso(row[5]),
            last_notified_at=from_iso(row[6]),
            last_reply_at=from_iso(row[7]),
        ),
        profile=json.loads(row[8] or "{}"),
        emergency_contact=json.loads(row[9] or "{}"),
    )


class _SqliteBase:
    def __init__(self, conn: Connection) -> None:
        self.conn = conn
        self._lock = connection_lock(conn)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.Error as e:
                self._rollback(operation)
                raise StoreUnavailableError(
                    f"{operation} failed: {e}", context={"operation": operation}, cause=e
                ) from e
            except Exception:
                # e.g. an unparseable timestamp read mid-transaction
                self._rollback(operation)
                raise

    def _rollback(self, operation: str) -> None:
        try:
            self.conn.rollback()
        except sqlite3.Error:
            logger.debug("rollback_failed", operation=operation)


class SqliteSubjectStore(_SqliteBase):
    """``SubjectStore`` over the ``watch_subjects`` table."""

    def get(self, subject_id: str) -> Subject | None:
        with self._guard("get"):
            row = self.conn.execute(
                f"SELECT {_SUBJECT_COLUMNS} FROM watch_subjects WHERE subject_id = ?",
                (subject_id,),
            ).fetchone()
        return _row_to_subject(row) if row else None

    def save(self, subject: Subject) -> None:
        w = subject.watch
        with self._guard("save"):
            self.conn.execute(
                f"""
                INSERT OR REPLACE INTO watch_subjects ({_SUBJECT_COLUMNS}, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    subject.id,
                    int(w.enabled),
                    int(w.awaiting_reply),
                    to_iso(w.next_ping_at),
                    to_iso(w.last_ping_at),
                    to_iso(w.last_reminder_at),
                    to_iso(w.last_notified_at),
                    to_iso(w.last_reply_at),
                    json.dumps(subject.profile, ensure_ascii=False),
                    json.dumps(subject.emergency_contact, ensure_ascii=False),
                    to_iso(utc_now()),
                ),
            )
            self.conn.commit()

    def _set_clause(self, patch: WatchPatch) -> tuple[str, list[Any]]:
        unknown = set(patch) - set(WATCH_FIELDS)
        if unknown:
            raise KeyError(f"Unknown watch fields: {sorted(unknown)}")
        assignments = [f"{key} = ?" for key in patch]
        params = [_to_db(key, value) for key, value in patch.items()]
        assignments.append("updated_at = ?")
        params.append(to_iso(utc_now()))
        return ", ".join(assignments), params

    def patch_watch(self, subject_id: str, patch: WatchPatch) -> bool:
        set_sql, params = self._set_clause(patch)
        with self._guard("patch_watch"):
            cursor = self.conn.execute(
                f"UPDATE watch_subjects SET {set_sql} WHERE subject_id = ?",
                (*params, subject_id),
            )
            self.conn.commit()
        return cursor.rowcount > 0

    def compare_and_patch(
        self,
        subject_id: str,
        expected: WatchState,
        patch: WatchPatch,
    ) -> bool:
        new_state = expected.apply(patch)
        set_sql, params = self._set_clause(new_state.to_dict())
        with self._guard("compare_and_patch"):
            self.conn.execute("BEGIN IMMEDIATE")
            row = self.conn.execute(
                f"SELECT {_SUBJECT_COLUMNS} FROM watch_subjects WHERE subject_id = ?",
                (subject_id,),
            ).fetchone()
            if row is None or _row_to_subject(row).watch != expected:
                self.conn.rollback()
                return False
            self.conn.execute(
                f"UPDATE watch_subjects SET {set_sql} WHERE subject_id = ?",
                (*params, subject_id),
            )
            self.conn.commit()
        return True

    def query_due_for_ping(self, now: datetime, limit: int) -> list[Subject]:
        with self._guard("query_due_for_ping"):
            rows = self.conn.execute(
                f"""
                SELECT {_SUBJECT_COLUMNS} FROM watch_subjects
                WHERE enabled = 1 AND awaiting_reply = 0
                  AND next_ping_at IS NOT NULL AND julianday(next_ping_at) <= julianday(?)
                ORDER BY julianday(next_ping_at)
                LIMIT ?
                """,
                (to_iso(now), limit),
            ).fetchall()
        return [_row_to_subject(r) for r in rows]

    def query_awaiting_reply(self, limit: int) -> list[Subject]:
        with self._guard("query_awaiting_reply"):
            rows = self.conn.execute(
                f"""
                SELECT {_SUBJECT_COLUMNS} FROM watch_subjects
                WHERE enabled = 1 AND awaiting_reply = 1
                ORDER BY last_ping_at
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_row_to_subject(r) for r in rows]

    def query_unscheduled(self, limit: int) -> list[Subject]:
        with self._guard("query_unscheduled"):
            rows = self.conn.execute(
                f"""
                SELECT {_SUBJECT_COLUMNS} FROM watch_subjects
                WHERE enabled = 1 AND awaiting_reply = 0 AND next_ping_at IS NULL
                ORDER BY subject_id
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_row_to_subject(r) for r in rows]

    def scan(self, limit: int) -> list[Subject]:
        with self._guard("scan"):
            rows = self.conn.execute(
                f"""
                SELECT {_SUBJECT_COLUMNS} FROM watch_subjects
                WHERE enabled = 1
                ORDER BY subject_id
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_row_to_subject(r) for r in rows]

    def get_setting(self, key: str) -> str | None:
        with self._guard("get_setting"):
            row = self.conn.execute(
                "SELECT value FROM watch_settings WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def put_setting(self, key: str, value: str | None) -> None:
        with self._guard("put_setting"):
            if value is None:
                self.conn.execute("DELETE FROM watch_settings WHERE key = ?", (key,))
            else:
                self.conn.execute(
                    """
                    INSERT INTO watch_settings (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT (key) DO UPDATE SET value = excluded.value,
                                                    updated_at = excluded.updated_at
                    """,
                    (key, value, to_iso(utc_now())),
                )
            self.conn.commit()


class SqliteLockStore(_SqliteBase):
    """``LockStore`` over the ``watch_locks`` table."""

    def try_acquire(self, name: str, holder: str, now: datetime, until: datetime) -> bool:
        with self._guard("lock_acquire"):
            self.conn.execute(
                "DELETE FROM watch_locks WHERE lock_name = ? AND expires_at <= ?",
                (name, to_iso(now)),
            )
            cursor = self.conn.execute(
                """
                INSERT OR IGNORE INTO watch_locks (lock_name, locked_by, locked_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (name, holder, to_iso(now), to_iso(until)),
            )
            self.conn.commit()
        return cursor.rowcount > 0

    def release(self, name: str, holder: str) -> bool:
        with self._guard("lock_release"):
            cursor = self.conn.execute(
                "DELETE FROM watch_locks WHERE lock_name = ? AND locked_by = ?",
                (name, holder),
            )
            self.conn.commit()
        return cursor.rowcount > 0

    def force_release(self, name: str) -> bool:
        """Drop a lock regardless of holder (operator recovery)."""
        with self._guard("lock_force_release"):
            cursor = self.conn.execute("DELETE FROM watch_locks WHERE lock_name = ?", (name,))
            self.conn.commit()
        return cursor.rowcount > 0

    def get(self, name: str) -> LockRecord | None:
        with self._guard("lock_get"):
            row = self.conn.execute(
                "SELECT lock_name, locked_by, locked_at, expires_at FROM watch_locks "
                "WHERE lock_name = ?",
                (name,),
            ).fetchone()
        return self._to_record(row) if row else None

    def list_active(self, now: datetime) -> list[LockRecord]:
        with self._guard("lock_list"):
            rows = self.conn.execute(
                """
                SELECT lock_name, locked_by, locked_at, expires_at FROM watch_locks
                WHERE expires_at > ?
                ORDER BY locked_at
                """,
                (to_iso(now),),
            ).fetchall()
        return [self._to_record(r) for r in rows]

    @staticmethod
    def _to_record(row: tuple) -> LockRecord:
        return LockRecord(
            name=row[0],
            holder=row[1],
            acquired_at=from_iso(row[2]),
            until=from_iso(row[3]),
        )
