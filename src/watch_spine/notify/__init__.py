"""
Outgoing notifications.

    NotificationDispatcher  normalize, validate, chunk, never raise
    DeliveryChannel         transport protocol (LINE push, console, recording)
    DeliveryResult          typed outcome of a deliver() call
"""

from watch_spine.notify.base import BaseChannel
from watch_spine.notify.channels import (
    ConsoleChannel,
    LinePushChannel,
    RecordedPush,
    RecordingChannel,
)
from watch_spine.notify.dispatcher import (
    EMPTY_TEXT_PLACEHOLDER,
    NotificationDispatcher,
    normalize_message,
)
from watch_spine.notify.protocol import (
    CardMessage,
    ChannelType,
    DeliveryChannel,
    DeliveryResult,
    Message,
    TextMessage,
)

__all__ = [
    "BaseChannel",
    "CardMessage",
    "ChannelType",
    "ConsoleChannel",
    "DeliveryChannel",
    "DeliveryResult",
    "EMPTY_TEXT_PLACEHOLDER",
    "LinePushChannel",
    "Message",
    "NotificationDispatcher",
    "RecordedPush",
    "RecordingChannel",
    "TextMessage",
    "normalize_message",
]
