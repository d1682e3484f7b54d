"""
CLI: ``watch-spine group``: responsible-party channel commands.
"""

from __future__ import annotations

import typer

from watch_spine.cli.utils import console, fail, make_context, output
from watch_spine.core.errors import ValidationError

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_group(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show where escalations are delivered."""
    ctx = make_context(database)
    data = {
        "configured": ctx.settings.configured_responsible_party or None,
        "active": ctx.resolver.resolve(),
    }
    output(data, as_json=json_out, title="Responsible party")


@app.command("set")
def set_group(
    group_id: str = typer.Argument(..., help="Group id (C followed by 20+ characters)"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Store the escalation group id (used when none is configured)."""
    ctx = make_context(database)
    try:
        gid = ctx.resolver.set_active(group_id)
    except ValidationError as e:
        fail(e.message)
    console.print(f"[green]Escalation group set[/green]: {gid}")


@app.command("clear")
def clear_group(
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Remove the stored escalation group id."""
    ctx = make_context(database)
    ctx.resolver.clear()
    console.print("[yellow]Escalation group cleared[/yellow]")
