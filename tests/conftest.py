"""Pytest configuration and fixtures for filejournal tests."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import Mock

import pytest
import structlog

from filejournal.fs.executor import MutationExecutor
from filejournal.fs.journal import Journal
from filejournal.fs.paths import PathResolver
from filejournal.utils.logs import set_debug


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every test from an empty working directory.

    Resolution tries paths relative to the cwd first, so tests must not see
    files from the repository checkout.
    """
    cwd = tmp_path / "cwd"
    cwd.mkdir()
    monkeypatch.chdir(cwd)
    return cwd


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Undo logging configuration done by CLI commands."""
    yield
    structlog.reset_defaults()
    set_debug(False)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Primary root directory for resolution and new files."""
    primary = tmp_path / "root"
    primary.mkdir()
    return primary.resolve()


@pytest.fixture
def logger() -> Mock:
    return Mock()


@pytest.fixture
def executor(root: Path, logger: Mock) -> MutationExecutor:
    return MutationExecutor(PathResolver([root]), Journal(logger), logger=logger)
