"""Command-line interface (``watch-spine``)."""

from watch_spine.cli.app import app

__all__ = ["app"]
