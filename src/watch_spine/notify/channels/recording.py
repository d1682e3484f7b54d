"""In-memory channel that records every push (for tests and dry runs)."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from watch_spine.notify.base import BaseChannel
from watch_spine.notify.protocol import ChannelType, DeliveryResult


@dataclass(frozen=True)
class RecordedPush:
    recipient: str
    payloads: list[dict[str, Any]]


class RecordingChannel(BaseChannel):
    """Keeps every push in memory.

    ``fail_with`` makes every send report that error instead, which is how
    tests simulate an unreachable transport.
    """

    def __init__(
        self,
        name: str = "recording",
        *,
        fail_with: Exception | None = None,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.RECORDING, **kwargs)
        self.fail_with = fail_with
        self.pushes: list[RecordedPush] = []
        self._lock = threading.Lock()

    def send(self, recipient: str, payloads: list[dict[str, Any]]) -> DeliveryResult:
        if self.fail_with is not None:
            return DeliveryResult.fail(self._name, recipient, self.fail_with)
        with self._lock:
            self.pushes.append(RecordedPush(recipient, list(payloads)))
        return DeliveryResult.ok(self._name, recipient, len(payloads))

    def sent_to(self, recipient: str) -> list[dict[str, Any]]:
        """All payloads pushed to *recipient*, in order."""
        with self._lock:
            return [p for push in self.pushes if push.recipient == recipient for p in push.payloads]

    def recipients(self) -> list[str]:
        with self._lock:
            return [push.recipient for push in self.pushes]

    def clear(self) -> None:
        with self._lock:
            self.pushes.clear()
