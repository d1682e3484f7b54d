"""
Root Typer application for the watch-spine CLI.
"""

from __future__ import annotations

import time

import typer
from typer import Typer

from watch_spine.cli.utils import console, fail, load_settings, make_context, output
from watch_spine.core.logging import configure_logging
from watch_spine.core.timeutil import utc_now
from watch_spine.store.models import Subject, WatchState

app = Typer(
    name="watch-spine",
    help="Periodic check-in, reminder and escalation scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version / logging callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("watch-spine")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"watch-spine {v}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="silent | error | warn | info | debug"
    ),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Run ticks, manage enrollment and escalation routing."""
    settings = load_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.log_json)


# ── Tick commands ────────────────────────────────────────────────────────


@app.command("run")
def run_tick(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one tick (external runner). Exits 1 if the tick could not run cleanly."""
    from watch_spine.scheduling import create_scheduler

    settings = load_settings(database, runner="external")
    report = create_scheduler(settings).run_once()
    output(report, as_json=json_out, title="Tick")
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    database: str | None = typer.Option(None, "--database", "-d"),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between ticks"),
) -> None:
    """Tick on an internal timer until interrupted."""
    from watch_spine.scheduling import create_scheduler

    overrides: dict = {"runner": "internal"}
    if interval is not None:
        overrides["tick_interval_seconds"] = interval
    settings = load_settings(database, **overrides)
    scheduler = create_scheduler(settings)

    console.print(
        f"[bold green]Watching[/bold green] every {settings.tick_interval_seconds:g}s "
        f"(lock {settings.lock_name!r}, ttl {settings.lock_ttl_seconds:g}s)"
    )
    scheduler.start()
    try:
        while scheduler.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        console.print("[dim]Stopping...[/dim]")
    finally:
        scheduler.stop()


@app.command("backfill")
def backfill(
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Give enabled, unscheduled subjects a next check-in time."""
    ctx = make_context(database)
    now = utc_now()
    count = ctx.selector.backfill_next_ping(now, ctx.machine.next_ping_after(now))
    console.print(f"Scheduled [bold]{count}[/bold] subject(s)")


@app.command("status")
def status(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show queue sizes, escalation routing and active locks."""
    ctx = make_context(database)
    now = utc_now()
    data = {
        "database": str(ctx.settings.database),
        "runner": ctx.settings.runner,
        "due_for_ping": len(ctx.subjects.query_due_for_ping(now, ctx.settings.select_limit)),
        "awaiting_reply": len(ctx.subjects.query_awaiting_reply(ctx.settings.select_limit)),
        "responsible_party": ctx.resolver.resolve(),
        "active_locks": [lock.to_dict() for lock in ctx.locks.list_active_locks()],
    }
    output(data, as_json=json_out, title="Watch status")


# ── Subject commands ─────────────────────────────────────────────────────


@app.command("enable")
def enable(
    subject_id: str = typer.Argument(..., help="Subject id"),
    name: str | None = typer.Option(None, "--name", help="Display name when creating"),
    create: bool = typer.Option(False, "--create", help="Create the subject if unknown"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Enroll a subject; the first check-in goes out on the next tick."""
    ctx = make_context(database)
    if create and ctx.subjects.get(subject_id) is None:
        profile = {"displayName": name} if name else {}
        ctx.subjects.save(Subject(id=subject_id, watch=WatchState(), profile=profile))
    if not ctx.machine.set_enabled(subject_id, True, utc_now()):
        fail(f"Unknown subject: {subject_id}")
    console.print(f"[green]Enabled[/green] {subject_id}")


@app.command("disable")
def disable(
    subject_id: str = typer.Argument(..., help="Subject id"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Withdraw a subject from the watch."""
    ctx = make_context(database)
    if not ctx.machine.set_enabled(subject_id, False, utc_now()):
        fail(f"Unknown subject: {subject_id}")
    console.print(f"[yellow]Disabled[/yellow] {subject_id}")


@app.command("ack")
def acknowledge(
    subject_id: str = typer.Argument(..., help="Subject id"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Record a reply from a subject and schedule the next check-in."""
    ctx = make_context(database)
    if ctx.machine.acknowledge(subject_id, utc_now()):
        console.print(f"[green]Acknowledged[/green] {subject_id}")
    else:
        console.print(f"[dim]{subject_id} was not awaiting a reply[/dim]")


@app.command("show")
def show_subject(
    subject_id: str = typer.Argument(..., help="Subject id"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show a subject's watch state."""
    ctx = make_context(database)
    subject = ctx.subjects.get(subject_id)
    if subject is None:
        fail(f"Unknown subject: {subject_id}")
    output({"id": subject.id, **subject.watch.to_dict()}, as_json=json_out, title=subject.display_name)


# ── Sub-command registration ─────────────────────────────────────────────

from watch_spine.cli.group import app as group_app  # noqa: E402
from watch_spine.cli.locks import app as locks_app  # noqa: E402

app.add_typer(group_app, name="group", help="Escalation group routing.")
app.add_typer(locks_app, name="locks", help="Tick lock inspection and recovery.")
