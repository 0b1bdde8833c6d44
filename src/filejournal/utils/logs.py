"""Structured logging for filejournal.

Journal and executor events go through structlog. ``debug()`` is the
single entrypoint for developer tracing. It is toggled by FILEJOURNAL_DEBUG
and by the ``debug`` setting passed to ``configure_logging``. Debug lines go
to stderr so they never mix with command output.

Usage:
    from filejournal.utils.logs import debug, get_logger

    logger = get_logger(__name__)
    logger.info("journal.recorded", action="write", path="/tmp/x")
    debug(f"Resolved {path}")
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from filejournal.core.settings import env_flag

__all__ = ["configure_logging", "debug", "get_logger", "safe_log", "set_debug"]

# Default from the environment; configure_logging may override it
_DEBUG_ENABLED = env_flag(os.environ.get("FILEJOURNAL_DEBUG"))


def configure_logging(
    level: str = "info",
    json_output: bool = False,
    debug_output: bool | None = None,
) -> None:
    """Configure structlog processors and renderer.

    Args:
        level: Minimum level name (debug, info, warning, error, critical)
        json_output: Render JSON lines instead of human-readable console output
        debug_output: Turn debug() tracing on or off; None keeps the current state
    """
    if debug_output is not None:
        set_debug(debug_output)

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def set_debug(enabled: bool) -> None:
    """Turn debug() output on or off for the rest of the process."""
    global _DEBUG_ENABLED
    _DEBUG_ENABLED = enabled


def get_logger(name: str | None = None, **initial: Any) -> Any:
    """Return a structlog logger bound to ``name`` and ``initial`` context."""
    logger = structlog.get_logger(name)
    if initial:
        logger = logger.bind(**initial)
    return logger


def safe_log(logger: Any, level: str, event: str, **fields: Any) -> None:
    """Emit one log event without ever raising into the caller.

    Journal control flow must not depend on the logging side-channel, so a
    broken renderer or closed stream is reported on stderr and dropped.
    """
    try:
        getattr(logger, level)(event, **fields)
    except Exception as exc:  # noqa: BLE001 - logging must not alter control flow
        try:
            print(f"[filejournal] log emit failed for {event}: {exc}", file=sys.stderr)
        except OSError:
            return


def debug(msg: Any) -> None:
    """Print debug message to stderr if debug output is enabled.

    Args:
        msg: Message to print. Will be converted to string.

    Note:
        The environment variable is read at import time; use set_debug()
        or configure_logging() to change it afterwards.
    """
    if _DEBUG_ENABLED:
        print(f"[DEBUG] {msg}", file=sys.stderr)
