"""
Notification dispatcher.

The dispatcher is the single boundary between the watch core and a delivery
channel. It normalizes outgoing messages, validates cards locally, chunks
the batch to the transport's per-request limit, and converts every failure
into a ``DeliveryResult``. It never raises.

Normalization:
    text  -> stripped; empty becomes a placeholder; cut to ``max_text_length``
    card  -> fallback text stripped and required; body must be a bubble or
             carousel mapping; otherwise the whole call fails before any
             network attempt

Callers must not gate state transitions on the result. It is returned so
that tests and future policies can observe what happened.
"""

from __future__ import annotations

from typing import Any

from watch_spine.core.errors import DeliveryError, PayloadValidationError, WatchError
from watch_spine.core.logging import get_logger
from watch_spine.notify.protocol import (
    CardMessage,
    DeliveryChannel,
    DeliveryResult,
    Message,
    TextMessage,
)

logger = get_logger(__name__)

EMPTY_TEXT_PLACEHOLDER = "(no content)"
CARD_BODY_TYPES = frozenset({"bubble", "carousel"})


def normalize_message(message: Message, max_text_length: int) -> dict[str, Any]:
    """Turn one message into a wire payload.

    Raises:
        PayloadValidationError: The message cannot be sent as given.
    """
    if isinstance(message, (TextMessage, CardMessage)):
        payload = message.to_payload()
    elif isinstance(message, dict):
        payload = dict(message)
    else:
        raise PayloadValidationError(
            f"Unsupported message type: {type(message).__name__}", field="message"
        )

    kind = payload.get("type")
    if kind == "text":
        text = str(payload.get("text") or "").strip() or EMPTY_TEXT_PLACEHOLDER
        payload["text"] = text[:max_text_length]
        return payload

    if kind == "flex":
        alt_text = str(payload.get("altText") or "").strip()
        if not alt_text:
            raise PayloadValidationError("Card message requires fallback text", field="altText")
        contents = payload.get("contents")
        if not isinstance(contents, dict) or contents.get("type") not in CARD_BODY_TYPES:
            raise PayloadValidationError(
                "Card message body must be a bubble or carousel",
                field="contents",
                value=contents,
            )
        payload["altText"] = alt_text[:max_text_length]
        return payload

    raise PayloadValidationError(f"Unknown message type: {kind!r}", field="type", value=kind)


class NotificationDispatcher:
    """Fail-open delivery of message batches through one channel.

    Example:
        >>> dispatcher = NotificationDispatcher(RecordingChannel())
        >>> result = dispatcher.deliver("U123", [TextMessage("  hi  ")])
        >>> result.success
        True
    """

    def __init__(
        self,
        channel: DeliveryChannel,
        *,
        max_text_length: int = 1800,
        max_messages_per_request: int = 5,
    ):
        self.channel = channel
        self.max_text_length = max_text_length
        self.max_messages_per_request = max_messages_per_request

    def deliver(self, target: str, messages: Message | list[Message]) -> DeliveryResult:
        """Send *messages* to *target*. Never raises."""
        name = self.channel.name
        batch = messages if isinstance(messages, list) else [messages]

        if not target:
            error = DeliveryError("No delivery target given")
            logger.error("delivery_failed", recipient=target, channel=name, error=str(error))
            return DeliveryResult.fail(name, target, error)

        try:
            payloads = [normalize_message(m, self.max_text_length) for m in batch]
        except PayloadValidationError as e:
            logger.error(
                "delivery_payload_invalid",
                recipient=target,
                channel=name,
                field=e.field,
                error=e.message,
            )
            return DeliveryResult.fail(name, target, e)

        if not self.channel.enabled:
            logger.debug("delivery_channel_disabled", recipient=target, channel=name)
            return DeliveryResult.ok(name, target, 0, message="channel disabled")

        sent = 0
        step = self.max_messages_per_request
        for start in range(0, len(payloads), step):
            chunk = payloads[start : start + step]
            try:
                result = self.channel.send(target, chunk)
            except Exception as e:  # noqa: BLE001
                result = DeliveryResult.fail(name, target, e)

            if not result.success:
                error = result.error
                logger.error(
                    "delivery_failed",
                    recipient=target,
                    channel=name,
                    status=result.status,
                    error=result.message,
                    error_type=type(error).__name__ if error else None,
                    retryable=error.retryable if isinstance(error, WatchError) else None,
                    messages_sent=sent,
                )
                result.messages_sent = sent
                return result
            sent += len(chunk)

        logger.debug("delivered", recipient=target, channel=name, messages=sent)
        return DeliveryResult.ok(name, target, sent)


__all__ = ["NotificationDispatcher", "normalize_message", "EMPTY_TEXT_PLACEHOLDER"]
