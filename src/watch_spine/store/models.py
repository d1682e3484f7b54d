"""Subject and lock records."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any


class PatchOp(Enum):
    """Merge-patch sentinel values."""

    DELETE = "DELETE"


DELETE = PatchOp.DELETE

WATCH_FIELDS = (
    "enabled",
    "awaiting_reply",
    "next_ping_at",
    "last_ping_at",
    "last_reminder_at",
    "last_notified_at",
    "last_reply_at",
)

WatchPatch = dict[str, Any]


@dataclass(frozen=True)
class WatchState:
    """The ``watch`` sub-tree of a subject record.

    Invariants (outside of withdrawn subjects):
        - ``awaiting_reply`` implies no ``next_ping_at`` and a ``last_ping_at``
        - not ``awaiting_reply`` implies ``next_ping_at`` is set and
          ``last_reminder_at`` is absent
    """

    enabled: bool = False
    awaiting_reply: bool = False
    next_ping_at: datetime | None = None
    last_ping_at: datetime | None = None
    last_reminder_at: datetime | None = None
    last_notified_at: datetime | None = None
    last_reply_at: datetime | None = None

    def apply(self, patch: WatchPatch) -> WatchState:
        """Return a copy with *patch* merged in (``DELETE`` clears a field)."""
        unknown = set(patch) - set(WATCH_FIELDS)
        if unknown:
            raise KeyError(f"Unknown watch fields: {sorted(unknown)}")
        changes: dict[str, Any] = {}
        for key, value in patch.items():
            if value is DELETE:
                value = False if key in ("enabled", "awaiting_reply") else None
            changes[key] = value
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Subject:
    """An enrolled person. ``id`` doubles as the delivery address.

    ``profile`` and ``emergency_contact`` belong to the onboarding
    subsystem and are read-only here.
    """

    id: str
    watch: WatchState = field(default_factory=WatchState)
    profile: dict[str, Any] = field(default_factory=dict)
    emergency_contact: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return str(self.profile.get("displayName") or self.profile.get("name") or "(unknown)")


@dataclass(frozen=True)
class LockRecord:
    """A self-expiring mutex. Considered free once ``until`` has passed."""

    name: str
    holder: str
    acquired_at: datetime
    until: datetime

    def is_active(self, now: datetime) -> bool:
        return self.until > now

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "holder": self.holder,
            "acquired_at": self.acquired_at.isoformat(),
            "until": self.until.isoformat(),
        }
