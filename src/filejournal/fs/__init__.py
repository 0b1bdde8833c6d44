"""Filesystem mutation journal.

This package resolves user paths, applies reversible mutations through a
single executor and records them in a journal that can be rolled back.
"""

from filejournal.fs.actions import (
    Action,
    ActionKind,
    Copy,
    Delete,
    Find,
    Move,
    Read,
    Write,
    parse_action,
)
from filejournal.fs.executor import MutationExecutor
from filejournal.fs.journal import Journal, JournalEntry, RollbackReport
from filejournal.fs.paths import PathResolver, normalize_path
from filejournal.fs.result import Outcome

__all__ = [
    "Action",
    "ActionKind",
    "Copy",
    "Delete",
    "Find",
    "Journal",
    "JournalEntry",
    "Move",
    "MutationExecutor",
    "Outcome",
    "PathResolver",
    "Read",
    "RollbackReport",
    "Write",
    "normalize_path",
    "parse_action",
]
