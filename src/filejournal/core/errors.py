"""Custom exceptions for filejournal.

This module defines the typed exceptions raised by the resolver, the
mutation executor and the journal, plus the plan errors surfaced by the CLI.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    from filejournal.fs.journal import JournalEntry


class FileJournalError(Exception):
    """Base exception for all filejournal errors.

    All custom exceptions inherit from this base class so orchestration code
    can catch journal failures without catching unrelated errors.
    """

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for JSON output."""
        return {"error": "file_journal_error", "reason": str(self)}


class PathNotFound(FileJournalError):
    """Raised when a critical path cannot be resolved.

    Attributes:
        path: The path as supplied by the caller
        roots: Root directories that were searched
    """

    def __init__(self, path: str | Path, roots: Sequence[Path] = ()) -> None:
        self.path = str(path)
        self.roots = tuple(roots)

        message = f"Cannot find file: {self.path}"
        if self.roots:
            message += f" (searched {len(self.roots)} roots)"

        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for JSON output."""
        return {
            "error": "path_not_found",
            "path": self.path,
            "roots": [str(root) for root in self.roots],
        }

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return f"PathNotFound(path={self.path!r}, roots={len(self.roots)})"


class MutationFailed(FileJournalError):
    """Raised when the underlying filesystem call of an action fails.

    Raised regardless of the severity flag: an attempted mutation that
    failed is never treated as absent.

    Attributes:
        action: Action name (read, write, delete, copy, move)
        path: Path the action was applied to
        reason: Human-readable failure reason
    """

    def __init__(self, action: str, path: str | Path, reason: str) -> None:
        self.action = action
        self.path = str(path)
        self.reason = reason

        super().__init__(f"{action} failed for {self.path}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for JSON output."""
        return {
            "error": "mutation_failed",
            "action": self.action,
            "path": self.path,
            "reason": self.reason,
        }

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return (
            f"MutationFailed(action={self.action!r}, "
            f"path={self.path!r}, reason={self.reason!r})"
        )


class RollbackStepFailed(FileJournalError):
    """Records a single journal entry that could not be reversed.

    Rollback never raises this exception; instances are collected in the
    rollback report and logged.

    Attributes:
        entry: The journal entry whose reversal failed
        reason: Human-readable failure reason
    """

    def __init__(self, entry: JournalEntry, reason: str) -> None:
        self.entry = entry
        self.reason = reason

        super().__init__(
            f"Could not undo {entry.action.value} #{entry.sequence} "
            f"on {entry.target_path}: {reason}"
        )

    @property
    def path(self) -> Path:
        """Path left unrecovered by the failed reversal."""
        return self.entry.target_path

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for JSON output."""
        result: dict[str, Any] = {
            "error": "rollback_step_failed",
            "action": self.entry.action.value,
            "sequence": self.entry.sequence,
            "path": str(self.entry.target_path),
            "reason": self.reason,
        }

        if self.entry.secondary_path is not None:
            result["secondary_path"] = str(self.entry.secondary_path)

        return result

    def __repr__(self) -> str:
        """Return repr string for debugging."""
        return (
            f"RollbackStepFailed(sequence={self.entry.sequence}, "
            f"path={str(self.entry.target_path)!r}, reason={self.reason!r})"
        )


class PlanError(FileJournalError):
    """Raised when a step plan file cannot be loaded or validated."""

    def __init__(self, source: str | Path, reason: str) -> None:
        self.source = str(source)
        self.reason = reason

        super().__init__(f"Invalid plan {self.source}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for JSON output."""
        return {"error": "invalid_plan", "source": self.source, "reason": self.reason}
