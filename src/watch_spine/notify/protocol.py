"""
Notification protocol and data classes.

Outgoing messages are either plain text or a structured card. A card always
carries fallback text for clients that cannot render it.

Design:
- Channels (transports) implement ``DeliveryChannel`` and report every
  outcome as a ``DeliveryResult``; they do not raise for delivery failures.
- ``NotificationDispatcher`` normalizes and validates messages before any
  channel is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable


class ChannelType(str, Enum):
    """Delivery channel types."""

    LINE = "line"
    CONSOLE = "console"  # For development
    RECORDING = "recording"  # For testing


@dataclass(frozen=True)
class TextMessage:
    """A plain text message."""

    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class CardMessage:
    """A structured (flex) message with mandatory fallback text."""

    alt_text: str
    contents: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return {"type": "flex", "altText": self.alt_text, "contents": self.contents}


Message = Union[TextMessage, CardMessage, dict[str, Any]]


@dataclass
class DeliveryResult:
    """Outcome of one ``deliver`` call."""

    channel_name: str
    recipient: str
    success: bool
    messages_sent: int = 0
    message: str | None = None
    status: int | None = None
    error: Exception | None = None
    delivered_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def ok(
        cls,
        channel_name: str,
        recipient: str,
        messages_sent: int,
        **kwargs: Any,
    ) -> DeliveryResult:
        return cls(
            channel_name=channel_name,
            recipient=recipient,
            success=True,
            messages_sent=messages_sent,
            **kwargs,
        )

    @classmethod
    def fail(
        cls,
        channel_name: str,
        recipient: str,
        error: Exception,
        *,
        status: int | None = None,
        messages_sent: int = 0,
    ) -> DeliveryResult:
        return cls(
            channel_name=channel_name,
            recipient=recipient,
            success=False,
            messages_sent=messages_sent,
            message=str(error),
            status=status if status is not None else getattr(error, "status", None),
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "channel": self.channel_name,
            "recipient": self.recipient,
            "success": self.success,
            "messages_sent": self.messages_sent,
            "delivered_at": self.delivered_at.isoformat(),
        }
        if self.message:
            result["message"] = self.message
        if self.status is not None:
            result["status"] = self.status
        return result


@runtime_checkable
class DeliveryChannel(Protocol):
    """
    Protocol for delivery channels.

    Implementations must provide:
    - name: Unique channel identifier
    - channel_type: Type classification
    - send(): Push already-normalized payloads to one recipient
    """

    @property
    def name(self) -> str:
        ...

    @property
    def channel_type(self) -> ChannelType:
        ...

    @property
    def enabled(self) -> bool:
        ...

    def send(self, recipient: str, payloads: list[dict[str, Any]]) -> DeliveryResult:
        ...


__all__ = [
    "ChannelType",
    "TextMessage",
    "CardMessage",
    "Message",
    "DeliveryResult",
    "DeliveryChannel",
]
