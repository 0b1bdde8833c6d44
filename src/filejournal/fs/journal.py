"""In-memory journal of reversible filesystem mutations.

Every applied write, delete, copy and move is recorded with enough state to
undo it on its own. ``rollback()`` drains the journal newest-first and keeps
going past entries that cannot be reversed; ``dump()`` lists the affected
paths without touching anything.

The journal is not thread safe and is not persisted: it only protects
mutations made within the current process.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filejournal.core.errors import RollbackStepFailed
from filejournal.fs.actions import ActionKind
from filejournal.fs.paths import (
    path_present,
    relocate,
    remove_empty_dirs,
    restore_snapshot,
)
from filejournal.utils.logs import debug, get_logger, safe_log


@dataclass(frozen=True)
class JournalEntry:
    """One applied mutation and the state needed to reverse it.

    Attributes:
        action: Mutating action kind (write, delete, copy, move)
        target_path: Resolved path the action was applied to
        prior_content: Target bytes before a write/delete, None if it did not exist
        prior_link: Symlink target when the write/delete replaced a symlink
        secondary_path: Destination of a copy/move
        displaced_content: Destination bytes replaced by a copy/move, None if
            the destination did not exist
        displaced_link: Symlink target when a copy/move replaced a symlink
        created_dirs: Directories the action created, outermost first
        sequence: Position in the journal, used to order rollback
        recorded_at: When the entry was appended
    """

    action: ActionKind
    target_path: Path
    sequence: int
    prior_content: bytes | None = None
    prior_link: str | None = None
    secondary_path: Path | None = None
    displaced_content: bytes | None = None
    displaced_link: str | None = None
    created_dirs: tuple[Path, ...] = ()
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def revert(self) -> None:
        """Restore the pre-mutation state of this entry's paths.

        Directories created by the action are removed afterwards when they
        are empty.

        Raises:
            OSError: If the reversal cannot be performed
        """
        if self.action in (ActionKind.WRITE, ActionKind.DELETE):
            # Strict: a file that vanished since is reported, not ignored.
            restore_snapshot(self.target_path, self.prior_content, self.prior_link)
            remove_empty_dirs(self.created_dirs)
            return

        if self.secondary_path is None:
            raise ValueError(f"{self.action.value} entry has no destination")

        if self.action is ActionKind.COPY:
            self.secondary_path.unlink()
        elif self.action is ActionKind.MOVE:
            if not path_present(self.secondary_path):
                raise FileNotFoundError(
                    f"moved file is missing: {self.secondary_path}"
                )
            relocate(self.secondary_path, self.target_path)
        else:
            raise ValueError(f"{self.action.value} is not a mutating action")

        if self.displaced_content is not None or self.displaced_link is not None:
            restore_snapshot(
                self.secondary_path, self.displaced_content, self.displaced_link
            )
        remove_empty_dirs(self.created_dirs)

    def to_dict(self) -> dict[str, Any]:
        """Summarize the entry for audit output (content is not included)."""
        result: dict[str, Any] = {
            "sequence": self.sequence,
            "action": self.action.value,
            "path": str(self.target_path),
            "existed": self.prior_content is not None or self.prior_link is not None,
            "ts": self.recorded_at.isoformat(),
        }

        if self.action in (ActionKind.COPY, ActionKind.MOVE):
            result["existed"] = True
            result["secondary_path"] = str(self.secondary_path)
            result["replaced_existing"] = (
                self.displaced_content is not None or self.displaced_link is not None
            )

        if self.created_dirs:
            result["created_dirs"] = [str(path) for path in self.created_dirs]

        return result


@dataclass
class RollbackReport:
    """Summary of one rollback pass."""

    restored: int = 0
    failures: list[RollbackStepFailed] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.restored + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def unrecovered(self) -> list[Path]:
        """Paths whose reversal failed."""
        return [failure.path for failure in self.failures]

    def to_dict(self) -> dict[str, Any]:
        return {
            "restored": self.restored,
            "failed": len(self.failures),
            "failures": [failure.to_dict() for failure in self.failures],
        }


class Journal:
    """Ordered record of applied mutations.

    Only the owning executor appends entries. Other code inspects the
    journal through ``dump()`` or undoes it through ``rollback()``.
    """

    def __init__(self, logger: Any = None) -> None:
        self._entries: list[JournalEntry] = []
        self._sequence = 0
        self._logger = logger or get_logger(__name__)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def record(
        self,
        action: ActionKind,
        target_path: Path,
        *,
        prior_content: bytes | None = None,
        prior_link: str | None = None,
        secondary_path: Path | None = None,
        displaced_content: bytes | None = None,
        displaced_link: str | None = None,
        created_dirs: Sequence[Path] = (),
    ) -> JournalEntry:
        """Append an entry with the next sequence number."""
        if not action.mutating:
            raise ValueError(f"{action.value} actions are not journaled")

        self._sequence += 1
        entry = JournalEntry(
            action=action,
            target_path=target_path,
            sequence=self._sequence,
            prior_content=prior_content,
            prior_link=prior_link,
            secondary_path=secondary_path,
            displaced_content=displaced_content,
            displaced_link=displaced_link,
            created_dirs=tuple(created_dirs),
        )
        self._entries.append(entry)

        safe_log(
            self._logger,
            "debug",
            "journal.recorded",
            sequence=entry.sequence,
            action=action.value,
            path=str(target_path),
            secondary_path=str(secondary_path) if secondary_path else None,
        )
        return entry

    def rollback(self) -> RollbackReport:
        """Undo every entry, newest first, and leave the journal empty.

        A reversal that fails is logged and recorded in the report; the
        remaining entries are still processed. This method does not raise
        for failed reversals and never retries them.
        """
        # Detach first so the journal is empty whatever happens below.
        entries, self._entries = self._entries, []
        report = RollbackReport()

        for entry in sorted(entries, key=lambda e: e.sequence, reverse=True):
            try:
                entry.revert()
            except (OSError, ValueError) as exc:
                failure = RollbackStepFailed(entry, str(exc))
                report.failures.append(failure)
                safe_log(
                    self._logger,
                    "warning",
                    "journal.rollback_step_failed",
                    **failure.to_dict(),
                )
                continue

            report.restored += 1
            debug(f"Reverted {entry.action.value} #{entry.sequence}")

        if entries:
            safe_log(
                self._logger,
                "info",
                "journal.rollback_complete",
                restored=report.restored,
                failed=len(report.failures),
            )
        return report

    def dump(self) -> list[str]:
        """Target paths of all entries in sequence order."""
        return [str(entry.target_path) for entry in self._entries]

    def entries(self) -> tuple[JournalEntry, ...]:
        """Read-only snapshot of the current entries."""
        return tuple(self._entries)

    def describe(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]
