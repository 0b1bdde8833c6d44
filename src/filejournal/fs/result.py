"""Result type returned by the mutation executor."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from filejournal.core.errors import FileJournalError


@dataclass(frozen=True)
class Outcome:
    """Result of one executor call.

    ``status`` is one of:
    - "ok": the action ran; ``value`` holds its result
    - "absent": the target did not resolve and the call was not critical
    - "failed": ``error`` holds the PathNotFound or MutationFailed raised
    """

    status: Literal["ok", "absent", "failed"]
    value: Any = None
    path: Path | None = None
    error: FileJournalError | None = None

    @classmethod
    def success(cls, value: Any = None, path: Path | None = None) -> Outcome:
        return cls(status="ok", value=value, path=path)

    @classmethod
    def absent(cls) -> Outcome:
        return cls(status="absent")

    @classmethod
    def failure(cls, error: FileJournalError, path: Path | None = None) -> Outcome:
        return cls(status="failed", error=error, path=path)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_absent(self) -> bool:
        return self.status == "absent"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    def unwrap(self) -> Any:
        """Return the value, ``None`` when absent, or raise the failure."""
        if self.error is not None:
            raise self.error
        return self.value
