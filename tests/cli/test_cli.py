"""Tests for the watch-spine CLI."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest
from typer.testing import CliRunner

from _support import GROUP_ID
from watch_spine.cli import app
from watch_spine.core.timeutil import utc_now
from watch_spine.store import SqliteLockStore, SqliteSubjectStore, connect
from watch_spine.store.models import DELETE

runner = CliRunner()


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point every command at a throwaway database with console delivery."""
    path = tmp_path / "watch.db"
    monkeypatch.setenv("WATCH_DATABASE", str(path))
    for var in ("LINE_CHANNEL_ACCESS_TOKEN", "WATCH_GROUP_ID", "OFFICER_GROUP_ID", "WATCH_RUNNER"):
        monkeypatch.delenv(var, raising=False)
    return path


def invoke(*args: str):
    return runner.invoke(app, ["--log-level", "silent", *args])


def load_json(result) -> dict:
    return json.loads(result.output)


# ── Basics ───────────────────────────────────────────────────────────


class TestBasics:
    """Tests for the root application."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "watch-spine" in result.output

    def test_status_empty(self, db_path):
        result = invoke("status", "--json")
        assert result.exit_code == 0
        data = load_json(result)
        assert data["due_for_ping"] == 0
        assert data["responsible_party"] is None


# ── Subject commands ─────────────────────────────────────────────────


class TestSubjectCommands:
    """Tests for enable / disable / ack / show."""

    def test_enable_unknown_fails(self, db_path):
        result = invoke("enable", "U404")
        assert result.exit_code == 1

    def test_enable_create_and_show(self, db_path):
        result = invoke("enable", "U1", "--create", "--name", "Alice")
        assert result.exit_code == 0

        data = load_json(invoke("show", "U1", "--json"))
        assert data["enabled"] is True
        assert data["awaiting_reply"] is False
        assert data["next_ping_at"] is not None

    def test_disable(self, db_path):
        invoke("enable", "U1", "--create")
        assert invoke("disable", "U1").exit_code == 0

        data = load_json(invoke("show", "U1", "--json"))
        assert data["enabled"] is False
        assert data["next_ping_at"] is None

    def test_show_unknown_fails(self, db_path):
        assert invoke("show", "U404").exit_code == 1


# ── Tick commands ────────────────────────────────────────────────────


class TestRunCommand:
    """Tests for the external-runner tick."""

    def test_run_pings_then_ack(self, db_path):
        invoke("enable", "U1", "--create")

        result = invoke("run")
        assert result.exit_code == 0

        store = SqliteSubjectStore(connect(db_path))
        assert store.get("U1").watch.awaiting_reply is True

        result = invoke("ack", "U1")
        assert result.exit_code == 0
        assert "Acknowledged" in result.output
        assert store.get("U1").watch.awaiting_reply is False

    def test_ack_when_not_awaiting(self, db_path):
        invoke("enable", "U1", "--create")
        result = invoke("ack", "U1")
        assert result.exit_code == 0
        assert "not awaiting" in result.output

    def test_run_while_locked_is_ok(self, db_path):
        now = utc_now()
        SqliteLockStore(connect(db_path)).try_acquire(
            "watch-tick", "other", now, now + timedelta(minutes=10)
        )
        assert invoke("run").exit_code == 0

    def test_backfill(self, db_path):
        store = SqliteSubjectStore(connect(db_path))
        invoke("enable", "U1", "--create")
        invoke("enable", "U2", "--create")
        store.patch_watch("U2", {"next_ping_at": DELETE})

        result = invoke("backfill")
        assert result.exit_code == 0
        assert store.get("U2").watch.next_ping_at > utc_now()


# ── Sub-apps ─────────────────────────────────────────────────────────


class TestGroupCommands:
    """Tests for 'group' routing commands."""

    def test_set_show_clear(self, db_path):
        assert invoke("group", "set", GROUP_ID).exit_code == 0
        assert load_json(invoke("group", "show", "--json"))["active"] == GROUP_ID

        assert invoke("group", "clear").exit_code == 0
        assert load_json(invoke("group", "show", "--json"))["active"] is None

    def test_set_rejects_malformed(self, db_path):
        assert invoke("group", "set", "U123").exit_code == 1


class TestLockCommands:
    """Tests for 'locks' inspection and recovery."""

    def test_list_and_release(self, db_path):
        now = utc_now()
        SqliteLockStore(connect(db_path)).try_acquire(
            "watch-tick", "stuck", now, now + timedelta(minutes=10)
        )

        listed = json.loads(invoke("locks", "list", "--json").output)
        assert [lock["name"] for lock in listed] == ["watch-tick"]

        result = invoke("locks", "release")
        assert result.exit_code == 0
        assert "Released" in result.output
        assert json.loads(invoke("locks", "list", "--json").output) == []
