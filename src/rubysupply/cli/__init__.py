"""CLI for rubysupply."""

from rubysupply.cli.main import app, main


__all__ = ["app", "main"]
