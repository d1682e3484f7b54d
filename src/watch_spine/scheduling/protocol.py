"""Scheduler backend protocol.

Backends control WHEN a tick happens; ``SchedulerService`` controls WHAT a
tick does. The internal runner is the thread backend. The external runner
has no backend at all: a cron job invokes ``watch-spine run`` once per tick.

    ┌─────────────────┐     tick()     ┌──────────────────────────┐
    │  Thread Backend │ ─────────────► │  SchedulerService        │
    │  (internal)     │                │   lock → select → apply  │
    └─────────────────┘                └──────────────────────────┘
    ┌─────────────────┐   run_once()            ▲
    │  cron / CLI run │ ────────────────────────┘
    │  (external)     │
    └─────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Awaitable[Any]]


@runtime_checkable
class SchedulerBackend(Protocol):
    """Timing-only contract for tick backends."""

    name: str

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 300.0,
    ) -> None:
        """Start calling *tick_callback* every *interval_seconds*."""
        ...

    def stop(self) -> None:
        """Stop the loop, waiting briefly for the current tick."""
        ...

    def health(self) -> dict[str, Any]:
        """Return at least ``healthy``, ``backend``, ``tick_count`` and ``last_tick``."""
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            **self.extra,
        }
