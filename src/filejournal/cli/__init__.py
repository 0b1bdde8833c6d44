"""CLI entrypoints for filejournal."""

from filejournal.cli.journal import app, run_cli

__all__ = ["app", "run_cli"]
