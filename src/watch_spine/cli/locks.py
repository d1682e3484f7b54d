"""
CLI: ``watch-spine locks``: inspect and recover tick locks.
"""

from __future__ import annotations

import typer

from watch_spine.cli.utils import console, make_context, output

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_locks(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List locks that have not expired."""
    ctx = make_context(database)
    output(ctx.locks.list_active_locks(), as_json=json_out, title="Active locks")


@app.command("release")
def release_lock(
    name: str = typer.Argument("watch-tick", help="Lock name"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Force-release a lock regardless of holder."""
    ctx = make_context(database)
    if ctx.locks.force_release(name):
        console.print(f"[yellow]Released[/yellow] {name}")
    else:
        console.print(f"[dim]{name} was not held[/dim]")
