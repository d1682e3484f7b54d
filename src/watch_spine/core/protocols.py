"""
Connection protocol shared by the SQL-backed stores.

Stores depend on this shape, not on ``sqlite3`` directly, so any DB-API
connection whose cursor reports ``rowcount`` can stand in.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """Minimal synchronous DB-API connection."""

    def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Any:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


__all__ = ["Connection"]
