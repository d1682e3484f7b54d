"""Watch service settings.

Configuration is explicit, validated, and environment-driven. Settings are
built once at the process edge (the CLI) and handed to every component at
construction; decision logic never reads the environment itself, so it can
be exercised with injected thresholds and clocks.

Fields
──────
ping_interval_days                 : days between check-ins (PING_INTERVAL_DAYS)
reminder_after_hours               : hours after a check-in before reminding
escalate_after_hours               : hours after a check-in before escalating
reminder_repeat_hours              : minimum gap between two reminders
officer_notification_min_gap_hours : minimum gap between two escalation notices
lock_ttl_seconds                   : self-expiry of the tick lock
tick_interval_seconds              : internal runner cadence
timezone / checkin_hour            : local wall-clock hour check-ins land on
responsible_party_id               : escalation channel (WATCH_GROUP_ID or OFFICER_GROUP_ID)
log_level                          : silent | error | warn | info | debug

Examples:
    >>> settings = WatchSettings(reminder_after_hours=2, escalate_after_hours=3)
    >>> settings.reminder_after.total_seconds()
    7200.0
"""

from __future__ import annotations

from datetime import timedelta, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watch_spine.core.errors import InvalidConfigError

ZERO_WIDTH = "\u200b"


class WatchSettings(BaseSettings):
    """Runtime configuration for the watch scheduler."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Cycle thresholds ─────────────────────────────────────────
    ping_interval_days: int = 3
    reminder_after_hours: float = 24
    escalate_after_hours: float = 29
    reminder_repeat_hours: float = 1
    officer_notification_min_gap_hours: float = 1

    # ── Check-in wall clock ──────────────────────────────────────
    timezone: str = Field(
        default="Asia/Tokyo",
        validation_alias="WATCH_TIMEZONE",
    )
    checkin_hour: int = Field(
        default=15,
        ge=0,
        le=23,
        validation_alias="WATCH_CHECKIN_HOUR",
    )

    # ── Scheduling ───────────────────────────────────────────────
    lock_name: str = Field(
        default="watch-tick",
        validation_alias="WATCH_LOCK_NAME",
    )
    lock_ttl_seconds: float = Field(
        default=240,
        gt=0,
        validation_alias="WATCH_LOCK_TTL_SECONDS",
    )
    tick_interval_seconds: float = Field(
        default=300,
        gt=0,
        validation_alias="WATCH_TICK_INTERVAL_SECONDS",
    )
    runner: str = Field(
        default="internal",
        validation_alias="WATCH_RUNNER",
    )

    # ── Target selection ─────────────────────────────────────────
    select_limit: int = Field(
        default=200,
        gt=0,
        validation_alias="WATCH_SELECT_LIMIT",
    )
    fallback_scan_limit: int = Field(
        default=500,
        gt=0,
        validation_alias="WATCH_FALLBACK_SCAN_LIMIT",
    )

    # ── Delivery ─────────────────────────────────────────────────
    responsible_party_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("WATCH_GROUP_ID", "OFFICER_GROUP_ID"),
    )
    line_channel_access_token: str | None = Field(
        default=None,
        validation_alias="LINE_CHANNEL_ACCESS_TOKEN",
    )
    delivery_timeout_seconds: float = Field(
        default=6.0,
        gt=0,
        validation_alias="WATCH_DELIVERY_TIMEOUT_SECONDS",
    )

    # ── Storage ──────────────────────────────────────────────────
    database: Path = Field(
        default_factory=lambda: Path.home() / ".watch-spine" / "watch.db",
        validation_alias="WATCH_DATABASE",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(
        default="info",
        validation_alias="WATCH_LOG_LEVEL",
    )
    log_json: bool | None = Field(
        default=None,
        validation_alias="WATCH_LOG_JSON",
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> WatchSettings:
        if self.ping_interval_days <= 0:
            raise InvalidConfigError("PING_INTERVAL_DAYS", self.ping_interval_days)
        if self.reminder_after_hours <= 0:
            raise InvalidConfigError("REMINDER_AFTER_HOURS", self.reminder_after_hours)
        if self.escalate_after_hours <= self.reminder_after_hours:
            raise InvalidConfigError(
                "ESCALATE_AFTER_HOURS",
                self.escalate_after_hours,
                "ESCALATE_AFTER_HOURS must be greater than REMINDER_AFTER_HOURS",
            )
        if self.reminder_repeat_hours <= 0:
            raise InvalidConfigError("REMINDER_REPEAT_HOURS", self.reminder_repeat_hours)
        if self.officer_notification_min_gap_hours < 0:
            raise InvalidConfigError(
                "OFFICER_NOTIFICATION_MIN_GAP_HOURS", self.officer_notification_min_gap_hours
            )
        if self.runner.lower() not in ("internal", "external"):
            raise InvalidConfigError("WATCH_RUNNER", self.runner)
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidConfigError("WATCH_TIMEZONE", self.timezone) from e
        return self

    # ── Derived values ───────────────────────────────────────────

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    @property
    def reminder_after(self) -> timedelta:
        return timedelta(hours=self.reminder_after_hours)

    @property
    def escalate_after(self) -> timedelta:
        return timedelta(hours=self.escalate_after_hours)

    @property
    def reminder_repeat(self) -> timedelta:
        return timedelta(hours=self.reminder_repeat_hours)

    @property
    def notification_min_gap(self) -> timedelta:
        return timedelta(hours=self.officer_notification_min_gap_hours)

    @property
    def lock_ttl(self) -> timedelta:
        return timedelta(seconds=self.lock_ttl_seconds)

    @property
    def configured_responsible_party(self) -> str:
        """Responsible-party id from the environment, stripped of stray whitespace."""
        return (self.responsible_party_id or "").replace(ZERO_WIDTH, "").strip()
