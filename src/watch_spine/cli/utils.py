"""
CLI helpers for settings, wiring and output formatting.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from watch_spine.core.errors import ConfigError
from watch_spine.core.settings import WatchSettings
from watch_spine.notify.dispatcher import NotificationDispatcher
from watch_spine.scheduling import LockManager, build_channel
from watch_spine.store.sqlite import SqliteLockStore, SqliteSubjectStore, connect
from watch_spine.watch.machine import WatchStateMachine
from watch_spine.watch.responsible_party import ResponsiblePartyResolver
from watch_spine.watch.selector import TargetSelector

console = Console()
err_console = Console(stderr=True)


# ── Wiring ───────────────────────────────────────────────────────────────


def load_settings(database: str | None = None, **overrides: Any) -> WatchSettings:
    """Build settings from the environment, applying CLI overrides."""
    if database:
        overrides["database"] = database
    try:
        return WatchSettings(**overrides)
    except ConfigError as e:
        err_console.print(f"[bold red]Config error[/bold red]: {e.message}")
        raise typer.Exit(code=2) from e


@dataclass
class WatchContext:
    """Components a one-shot CLI command works with."""

    settings: WatchSettings
    subjects: SqliteSubjectStore
    locks: LockManager
    machine: WatchStateMachine
    selector: TargetSelector
    resolver: ResponsiblePartyResolver


def make_context(database: str | None = None) -> WatchContext:
    settings = load_settings(database)
    conn = connect(settings.database)
    subjects = SqliteSubjectStore(conn)
    resolver = ResponsiblePartyResolver(subjects, settings.configured_responsible_party)
    machine = WatchStateMachine(
        subjects,
        NotificationDispatcher(build_channel(settings)),
        settings,
        resolver=resolver,
    )
    return WatchContext(
        settings=settings,
        subjects=subjects,
        locks=LockManager(SqliteLockStore(conn), instance_id="cli"),
        machine=machine,
        selector=TargetSelector(
            subjects,
            select_limit=settings.select_limit,
            fallback_scan_limit=settings.fallback_scan_limit,
        ),
        resolver=resolver,
    )


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / object with to_dict / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def fail(message: str, code: int = 1) -> NoReturn:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=code)


def output(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a dict, a dataclass or a list of them."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def _print_table(items: list, *, title: str = "") -> None:
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
