"""Runtime configuration for filejournal.

Settings are read once from the environment (or built explicitly by the
caller) and are immutable afterwards, so the root path list cannot change
while a journal is in use.

Environment:
    FILEJOURNAL_ROOTS: Fallback root directories, separated by os.pathsep
    FILEJOURNAL_LOG_LEVEL: structlog level name (default: info)
    FILEJOURNAL_LOG_JSON: Emit JSON log lines instead of console output
    FILEJOURNAL_DEBUG: Enable debug() output
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

__all__ = ["JournalSettings", "env_flag"]

_TRUE_VALUES = ("1", "true", "yes")
_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def env_flag(value: str | None) -> bool:
    """Interpret an environment value as a boolean toggle."""
    return (value or "").strip().lower() in _TRUE_VALUES


def _expand_roots(value: Iterable[str | Path]) -> tuple[Path, ...]:
    # Absolute, de-duplicated, order preserved.
    roots: list[Path] = []
    for raw in value:
        if not str(raw).strip():
            continue
        root = Path(raw).expanduser().resolve()
        if root not in roots:
            roots.append(root)
    return tuple(roots)


class JournalSettings(BaseModel):
    """Immutable settings shared by the resolver, executor and CLI.

    Attributes:
        roots: Ordered fallback directories used during path resolution
        log_level: Minimum structlog level
        log_json: Render log events as JSON lines
        debug: Enable debug() output
    """

    roots: tuple[Path, ...] = Field(default_factory=tuple)
    log_level: str = "info"
    log_json: bool = False
    debug: bool = False

    model_config = {"frozen": True}

    @field_validator("roots", mode="before")
    @classmethod
    def expand_roots(cls, value: Iterable[str | Path]) -> tuple[Path, ...]:
        return _expand_roots(value)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> JournalSettings:
        """Build settings from FILEJOURNAL_* environment variables."""
        env = os.environ if environ is None else environ

        raw_roots = env.get("FILEJOURNAL_ROOTS", "")
        return cls(
            roots=[part for part in raw_roots.split(os.pathsep) if part],
            log_level=env.get("FILEJOURNAL_LOG_LEVEL", "info"),
            log_json=env_flag(env.get("FILEJOURNAL_LOG_JSON")),
            debug=env_flag(env.get("FILEJOURNAL_DEBUG")),
        )

    def with_roots(self, extra: Iterable[str | Path]) -> JournalSettings:
        """Return a copy with ``extra`` roots placed ahead of the current ones."""
        return self.model_copy(
            update={"roots": _expand_roots([*extra, *self.roots])}
        )

    def effective_roots(self) -> tuple[Path, ...]:
        """Configured roots, or the current working directory when none are set."""
        return self.roots or (Path.cwd().resolve(),)
