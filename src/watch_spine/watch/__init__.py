"""
Watch core: decision, transitions, selection and escalation gating.

    TargetSelector             who to look at this tick
    WatchStateMachine          decide + compare-and-patch + deliver
    EscalationRateLimiter      how often a responsible party is told
    ResponsiblePartyResolver   where escalations go
"""

from watch_spine.watch.machine import (
    Mode,
    TransitionOutcome,
    WatchStateMachine,
    decide,
    find_inconsistency,
)
from watch_spine.watch.messages import (
    ACK_POSTBACK,
    checkin_messages,
    mask_phone,
    officer_alert_messages,
    reminder_messages,
)
from watch_spine.watch.rate_limit import EscalationRateLimiter
from watch_spine.watch.responsible_party import (
    SETTING_KEY,
    ResponsiblePartyResolver,
    is_valid_group_id,
)
from watch_spine.watch.selector import (
    TargetSelector,
    is_awaiting_reply,
    is_due_for_ping,
    is_unscheduled,
)

__all__ = [
    "ACK_POSTBACK",
    "EscalationRateLimiter",
    "Mode",
    "ResponsiblePartyResolver",
    "SETTING_KEY",
    "TargetSelector",
    "TransitionOutcome",
    "WatchStateMachine",
    "checkin_messages",
    "decide",
    "find_inconsistency",
    "is_awaiting_reply",
    "is_due_for_ping",
    "is_unscheduled",
    "is_valid_group_id",
    "mask_phone",
    "officer_alert_messages",
    "reminder_messages",
]
