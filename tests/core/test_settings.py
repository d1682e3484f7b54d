"""Tests for WatchSettings."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from _support import GROUP_ID
from watch_spine.core.errors import InvalidConfigError
from watch_spine.core.settings import WatchSettings

ENV_VARS = (
    "PING_INTERVAL_DAYS",
    "REMINDER_AFTER_HOURS",
    "ESCALATE_AFTER_HOURS",
    "OFFICER_NOTIFICATION_MIN_GAP_HOURS",
    "WATCH_GROUP_ID",
    "OFFICER_GROUP_ID",
    "WATCH_TIMEZONE",
    "WATCH_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Test default configuration values."""

    def test_thresholds(self):
        settings = WatchSettings(_env_file=None)
        assert settings.ping_interval_days == 3
        assert settings.reminder_after_hours == 24
        assert settings.escalate_after_hours == 29
        assert settings.officer_notification_min_gap_hours == 1
        assert settings.reminder_repeat_hours == 1

    def test_scheduling(self):
        settings = WatchSettings(_env_file=None)
        assert settings.lock_ttl_seconds == 240
        assert settings.tick_interval_seconds == 300
        assert settings.lock_name == "watch-tick"
        assert settings.runner == "internal"

    def test_derived_durations(self):
        settings = WatchSettings(_env_file=None)
        assert settings.reminder_after.total_seconds() == 24 * 3600
        assert settings.escalate_after.total_seconds() == 29 * 3600
        assert settings.lock_ttl.total_seconds() == 240

    def test_no_responsible_party(self):
        assert WatchSettings(_env_file=None).configured_responsible_party == ""


class TestEnvironment:
    """Test environment-driven configuration."""

    def test_bare_threshold_names(self, monkeypatch):
        monkeypatch.setenv("ESCALATE_AFTER_HOURS", "30")
        monkeypatch.setenv("PING_INTERVAL_DAYS", "7")
        settings = WatchSettings(_env_file=None)
        assert settings.escalate_after_hours == 30
        assert settings.ping_interval_days == 7

    def test_watch_group_id(self, monkeypatch):
        monkeypatch.setenv("WATCH_GROUP_ID", GROUP_ID)
        assert WatchSettings(_env_file=None).configured_responsible_party == GROUP_ID

    def test_officer_group_id_alias(self, monkeypatch):
        monkeypatch.setenv("OFFICER_GROUP_ID", GROUP_ID)
        assert WatchSettings(_env_file=None).configured_responsible_party == GROUP_ID

    def test_zero_width_space_stripped(self, monkeypatch):
        monkeypatch.setenv("WATCH_GROUP_ID", f"\u200b{GROUP_ID}\u200b ")
        assert WatchSettings(_env_file=None).configured_responsible_party == GROUP_ID

    def test_log_level(self, monkeypatch):
        monkeypatch.setenv("WATCH_LOG_LEVEL", "silent")
        assert WatchSettings(_env_file=None).log_level == "silent"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("LOG_LEVEL", "debug"),
            ("DATABASE", "/tmp/other.db"),
            ("RUNNER", "external"),
            ("TIMEZONE", "UTC"),
            ("RESPONSIBLE_PARTY_ID", "C" + "x" * 25),
        ],
    )
    def test_generic_names_ignored(self, monkeypatch, name, value):
        """Only the WATCH_* names configure the service; shared generic variables do not."""
        monkeypatch.setenv(name, value)
        settings = WatchSettings(_env_file=None)
        defaults = WatchSettings.model_fields
        assert settings.log_level == defaults["log_level"].default
        assert settings.runner == "internal"
        assert settings.timezone == "Asia/Tokyo"
        assert settings.responsible_party_id is None
        assert settings.database.name == "watch.db"

    def test_keyword_construction_by_field_name(self):
        settings = WatchSettings(_env_file=None, runner="external", timezone="UTC", log_level="error")
        assert (settings.runner, settings.timezone, settings.log_level) == ("external", "UTC", "error")


class TestValidation:
    """Test invalid configuration is rejected at construction."""

    def test_escalate_must_exceed_reminder(self):
        with pytest.raises(InvalidConfigError) as exc:
            WatchSettings(_env_file=None, reminder_after_hours=5, escalate_after_hours=5)
        assert exc.value.key == "ESCALATE_AFTER_HOURS"

    def test_non_positive_interval(self):
        with pytest.raises(InvalidConfigError):
            WatchSettings(_env_file=None, ping_interval_days=0)

    def test_unknown_timezone(self):
        with pytest.raises(InvalidConfigError):
            WatchSettings(_env_file=None, timezone="Mars/Olympus_Mons")

    def test_unknown_runner(self):
        with pytest.raises(InvalidConfigError):
            WatchSettings(_env_file=None, runner="sometimes")

    def test_checkin_hour_range(self):
        with pytest.raises(PydanticValidationError):
            WatchSettings(_env_file=None, checkin_hour=24)
