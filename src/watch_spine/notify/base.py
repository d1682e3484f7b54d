"""
Delivery channel base class.

Provides common functionality for channel implementations:
- Enable/disable (a disabled channel reports success without sending)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from watch_spine.notify.protocol import ChannelType, DeliveryResult


class BaseChannel(ABC):
    """Base class for delivery channel implementations."""

    def __init__(
        self,
        name: str,
        channel_type: ChannelType,
        *,
        enabled: bool = True,
    ):
        self._name = name
        self._channel_type = channel_type
        self._enabled = enabled

    @property
    def name(self) -> str:
        return self._name

    @property
    def channel_type(self) -> ChannelType:
        return self._channel_type

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        """Enable the channel."""
        self._enabled = True

    def disable(self) -> None:
        """Disable the channel."""
        self._enabled = False

    @abstractmethod
    def send(self, recipient: str, payloads: list[dict[str, Any]]) -> DeliveryResult:
        """Push payloads to one recipient."""
        ...
