"""
Watch state machine.

Every tick, each selected subject is run through ``decide`` and the chosen
mode's transition is applied:

    ┌────────────┐   ping    ┌──────────────┐  >= reminder_after   ┌──────────┐
    │ scheduled  │ ────────► │   awaiting   │ ───────────────────► │ reminded │
    │ (!awaiting)│           │  (last_ping) │                      │          │
    └────────────┘           └──────────────┘                      └──────────┘
          ▲                        │  reply (acknowledge)               │
          │                        ▼                                    │
          └──────────── escalate (>= escalate_after), cycle reset ◄─────┘

Elapsed time is always measured from ``last_ping_at`` in absolute hours, not
calendar days.

Transitions are committed with a compare-and-patch against the state that
was read, and only then is the message handed to the dispatcher. If another
invocation already advanced the subject, the write loses and nothing is sent.
A crash between commit and delivery loses a message; it never sends one twice.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from watch_spine.core.errors import DataInconsistencyError, MissingConfigError, WatchError
from watch_spine.core.logging import get_logger
from watch_spine.core.settings import WatchSettings
from watch_spine.core.timeutil import hours_between, next_occurrence_at_hour
from watch_spine.notify.dispatcher import NotificationDispatcher
from watch_spine.notify.protocol import DeliveryResult
from watch_spine.store.models import DELETE, Subject, WatchPatch, WatchState
from watch_spine.store.protocol import SubjectStore
from watch_spine.watch.messages import checkin_messages, officer_alert_messages, reminder_messages
from watch_spine.watch.rate_limit import EscalationRateLimiter
from watch_spine.watch.responsible_party import ResponsiblePartyResolver

logger = get_logger(__name__)


class Mode(str, Enum):
    PING = "ping"
    REMIND = "remind"
    ESCALATE = "escalate"
    NOOP = "noop"


def find_inconsistency(subject: Subject) -> DataInconsistencyError | None:
    """Return the invariant violation that blocks a decision, if any."""
    if subject.watch.awaiting_reply and subject.watch.last_ping_at is None:
        return DataInconsistencyError(subject.id, "awaiting reply without last_ping_at")
    return None


def decide(watch: WatchState, now: datetime, settings: WatchSettings) -> Mode:
    """Pure decision function over one subject's watch state."""
    if not watch.enabled:
        return Mode.NOOP

    if not watch.awaiting_reply:
        if watch.next_ping_at is not None and watch.next_ping_at <= now:
            return Mode.PING
        return Mode.NOOP

    if watch.last_ping_at is None:
        return Mode.NOOP

    elapsed = now - watch.last_ping_at
    if elapsed >= settings.escalate_after:
        return Mode.ESCALATE
    if elapsed >= settings.reminder_after:
        last_reminder = watch.last_reminder_at
        if last_reminder is None or now - last_reminder >= settings.reminder_repeat:
            return Mode.REMIND
    return Mode.NOOP


@dataclass
class TransitionOutcome:
    """What ``apply`` did for one subject."""

    subject_id: str
    mode: Mode
    committed: bool = False
    notified: bool = False
    delivery: DeliveryResult | None = None
    error: WatchError | None = None

    @property
    def delivered(self) -> bool:
        return self.delivery is not None and self.delivery.success


class WatchStateMachine:
    """Applies ping / remind / escalate transitions against a subject store.

    Example:
        >>> machine = WatchStateMachine(store, dispatcher, settings)
        >>> subject = store.get("U123")
        >>> outcome = machine.process(subject, now)
        >>> outcome.mode
        <Mode.PING: 'ping'>
    """

    def __init__(
        self,
        store: SubjectStore,
        dispatcher: NotificationDispatcher,
        settings: WatchSettings,
        *,
        resolver: ResponsiblePartyResolver | None = None,
        rate_limiter: EscalationRateLimiter | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings
        self.resolver = resolver or ResponsiblePartyResolver(
            store, settings.configured_responsible_party
        )
        self.rate_limiter = rate_limiter or EscalationRateLimiter(settings.notification_min_gap)
        self.rng = rng

    def next_ping_after(self, instant: datetime) -> datetime:
        return next_occurrence_at_hour(
            instant,
            self.settings.tz,
            self.settings.checkin_hour,
            self.settings.ping_interval_days,
        )

    # === Decision ===

    def decide(self, subject: Subject, now: datetime) -> Mode:
        """Decide the mode for *subject*; inconsistent state is logged and yields NOOP."""
        problem = find_inconsistency(subject)
        if problem is not None:
            logger.warning("watch_state_inconsistent", **problem.to_dict())
            return Mode.NOOP
        return decide(subject.watch, now, self.settings)

    def process(self, subject: Subject, now: datetime) -> TransitionOutcome:
        return self.apply(self.decide(subject, now), subject, now)

    # === Transitions ===

    def apply(self, mode: Mode, subject: Subject, now: datetime) -> TransitionOutcome:
        """Commit the transition for *mode*, then deliver its messages.

        Raises:
            StoreUnavailableError: The subject store could not be written.
        """
        if mode is Mode.PING:
            return self._ping(subject, now)
        if mode is Mode.REMIND:
            return self._remind(subject, now)
        if mode is Mode.ESCALATE:
            return self._escalate(subject, now)
        return TransitionOutcome(subject.id, Mode.NOOP)

    def _commit(self, subject: Subject, mode: Mode, patch: WatchPatch) -> bool:
        committed = self.store.compare_and_patch(subject.id, subject.watch, patch)
        if not committed:
            logger.info("transition_superseded", subject_id=subject.id, mode=mode.value)
        return committed

    def _ping(self, subject: Subject, now: datetime) -> TransitionOutcome:
        outcome = TransitionOutcome(subject.id, Mode.PING)
        patch = {
            "awaiting_reply": True,
            "last_ping_at": now,
            "next_ping_at": DELETE,
            "last_reminder_at": DELETE,
        }
        if not self._commit(subject, Mode.PING, patch):
            return outcome
        outcome.committed = True
        outcome.delivery = self.dispatcher.deliver(subject.id, checkin_messages(self.rng))
        logger.info("ping_sent", subject_id=subject.id, delivered=outcome.delivered)
        return outcome

    def _remind(self, subject: Subject, now: datetime) -> TransitionOutcome:
        outcome = TransitionOutcome(subject.id, Mode.REMIND)
        if not self._commit(subject, Mode.REMIND, {"last_reminder_at": now}):
            return outcome
        outcome.committed = True
        outcome.delivery = self.dispatcher.deliver(subject.id, reminder_messages(self.rng))
        logger.info(
            "reminder_sent",
            subject_id=subject.id,
            elapsed_hours=round(hours_between(subject.watch.last_ping_at, now), 2),
            delivered=outcome.delivered,
        )
        return outcome

    def _escalate(self, subject: Subject, now: datetime) -> TransitionOutcome:
        outcome = TransitionOutcome(subject.id, Mode.ESCALATE)
        channel_id = self.resolver.resolve()
        allowed = self.rate_limiter.may_notify(subject, now, channel_id)

        patch: WatchPatch = {
            "awaiting_reply": False,
            "last_reminder_at": DELETE,
            "next_ping_at": self.next_ping_after(now),
        }
        if allowed:
            patch["last_notified_at"] = now
        if not self._commit(subject, Mode.ESCALATE, patch):
            return outcome
        outcome.committed = True

        elapsed = int(hours_between(subject.watch.last_ping_at, now))
        if channel_id is None:
            outcome.error = MissingConfigError(
                "WATCH_GROUP_ID", "No responsible-party channel configured or stored"
            )
            logger.warning(
                "escalation_without_responsible_party",
                subject_id=subject.id,
                elapsed_hours=elapsed,
                **outcome.error.to_dict(),
            )
        elif not allowed:
            logger.info(
                "escalation_notice_suppressed",
                subject_id=subject.id,
                last_notified_at=subject.watch.last_notified_at,
            )
        else:
            outcome.notified = True
            outcome.delivery = self.dispatcher.deliver(
                channel_id, officer_alert_messages(subject, elapsed)
            )
            logger.warning(
                "escalated",
                subject_id=subject.id,
                channel_id=channel_id,
                elapsed_hours=elapsed,
                delivered=outcome.delivered,
            )
        return outcome

    # === External events ===

    def acknowledge(self, subject_id: str, now: datetime) -> bool:
        """Record a reply from the subject and schedule the next check-in.

        Returns False if the subject is unknown or was not awaiting a reply.
        """
        subject = self.store.get(subject_id)
        if subject is None or not subject.watch.awaiting_reply:
            return False
        patch = {
            "awaiting_reply": False,
            "last_reply_at": now,
            "last_reminder_at": DELETE,
            "next_ping_at": self.next_ping_after(now),
        }
        acknowledged = self.store.compare_and_patch(subject_id, subject.watch, patch)
        if acknowledged:
            logger.info("reply_acknowledged", subject_id=subject_id)
        return acknowledged

    def set_enabled(self, subject_id: str, enabled: bool, now: datetime) -> bool:
        """Enroll or withdraw a subject.

        Enabling makes the subject due immediately; withdrawing clears the
        schedule so it is never selected.
        """
        if enabled:
            patch: WatchPatch = {
                "enabled": True,
                "awaiting_reply": False,
                "next_ping_at": now,
                "last_reminder_at": DELETE,
            }
        else:
            patch = {
                "enabled": False,
                "awaiting_reply": False,
                "next_ping_at": DELETE,
                "last_reminder_at": DELETE,
            }
        changed = self.store.patch_watch(subject_id, patch)
        logger.info("watch_enabled" if enabled else "watch_disabled", subject_id=subject_id, found=changed)
        return changed


__all__ = [
    "Mode",
    "TransitionOutcome",
    "WatchStateMachine",
    "decide",
    "find_inconsistency",
]
