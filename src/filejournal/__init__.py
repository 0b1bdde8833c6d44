"""filejournal: a transactional journal for filesystem mutations."""

from filejournal.core.errors import (
    FileJournalError,
    MutationFailed,
    PathNotFound,
    RollbackStepFailed,
)
from filejournal.core.settings import JournalSettings
from filejournal.fs import MutationExecutor, PathResolver

__version__ = "0.1.0"

__all__ = [
    "FileJournalError",
    "JournalSettings",
    "MutationExecutor",
    "MutationFailed",
    "PathNotFound",
    "PathResolver",
    "RollbackStepFailed",
    "__version__",
]
