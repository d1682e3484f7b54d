"""Delivery channel implementations."""

from watch_spine.notify.channels.console import ConsoleChannel
from watch_spine.notify.channels.line import LinePushChannel
from watch_spine.notify.channels.recording import RecordedPush, RecordingChannel

__all__ = [
    "ConsoleChannel",
    "LinePushChannel",
    "RecordedPush",
    "RecordingChannel",
]
