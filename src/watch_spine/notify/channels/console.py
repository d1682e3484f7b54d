"""Console delivery channel for development."""

from __future__ import annotations

import json
from typing import Any

from watch_spine.core.logging import get_logger
from watch_spine.notify.base import BaseChannel
from watch_spine.notify.protocol import ChannelType, DeliveryResult

logger = get_logger(__name__)


class ConsoleChannel(BaseChannel):
    """
    Console channel for development.

    Prints messages to stdout instead of pushing them anywhere.
    """

    def __init__(
        self,
        name: str = "console",
        *,
        color: bool = True,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.CONSOLE, **kwargs)
        self._color = color

    def _render(self, payload: dict[str, Any]) -> str:
        if payload.get("type") == "text":
            return payload["text"]
        return f"[{payload.get('type')}] {payload.get('altText', '')}"

    def send(self, recipient: str, payloads: list[dict[str, Any]]) -> DeliveryResult:
        """Print payloads to console."""
        prefix = f"→ {recipient}"
        if self._color:
            prefix = f"\033[96m{prefix}\033[0m"

        for payload in payloads:
            print(f"{prefix}: {self._render(payload)}")
            logger.debug("console_payload", recipient=recipient, payload=json.dumps(payload, ensure_ascii=False))

        return DeliveryResult.ok(self._name, recipient, len(payloads))
