"""Mutation executor: the single choke point for filesystem changes.

Every find, read, write, delete, copy and move goes through
``MutationExecutor``. Mutating actions capture the state needed to reverse
them before touching the disk and are appended to the executor's journal
once they succeed.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from filejournal.core.errors import FileJournalError, MutationFailed
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
from filejournal.fs.journal import Journal, JournalEntry, RollbackReport
from filejournal.fs.paths import (
    PathResolver,
    ensure_parent_dir,
    missing_parents,
    read_link,
    read_prior,
    relocate,
    remove_empty_dirs,
    restore_snapshot,
    write_atomic,
)
from filejournal.fs.result import Outcome
from filejournal.utils.logs import debug, get_logger, safe_log

ROLLBACK_COMMAND = "rollback"
DUMP_COMMAND = "dump"
COMMANDS = (ROLLBACK_COMMAND, DUMP_COMMAND)


class MutationExecutor:
    """Applies actions against resolved paths and journals every mutation.

    The executor is not thread safe. Use one executor (and journal) per
    logical operation.
    """

    def __init__(
        self,
        resolver: PathResolver | None = None,
        journal: Journal | None = None,
        logger: Any = None,
    ) -> None:
        """Initialize executor.

        Args:
            resolver: Path resolver; defaults to one rooted at the cwd
            journal: Journal to record into; a fresh one is created if omitted
            logger: Optional structlog logger instance
        """
        self._logger = logger or get_logger(__name__)
        self._resolver = resolver or PathResolver()
        self._journal = journal if journal is not None else Journal(self._logger)

    @property
    def resolver(self) -> PathResolver:
        return self._resolver

    def run(self, action: Action, critical: bool = True) -> Outcome:
        """Apply ``action`` and report the result without raising.

        Args:
            action: Action variant to apply
            critical: When False an unresolved target yields an absent
                outcome instead of a PathNotFound failure

        Returns:
            Outcome with status ok, absent or failed
        """
        try:
            return self._execute(action, critical)
        except FileJournalError as exc:
            safe_log(
                self._logger,
                "error",
                "executor.failed",
                action=action.kind.value,
                target=str(action.target),
                failure=exc.to_dict(),
            )
            return Outcome.failure(exc)

    def apply(self, action: Action, critical: bool = True) -> Any:
        """Apply ``action`` and return its value.

        Returns:
            The action's value, or None when the target is absent and the
            call is not critical

        Raises:
            PathNotFound: If the target does not resolve and critical is True
            MutationFailed: If the filesystem call fails
        """
        return self.run(action, critical).unwrap()

    def dispatch(
        self,
        target: str,
        action: str = "find",
        arg: str | bytes | None = None,
        critical: bool = True,
    ) -> Any:
        """String form of ``apply`` used by plans and the CLI.

        The pseudo-targets ``rollback`` and ``dump`` run those commands
        before any path resolution is attempted.
        """
        if target == ROLLBACK_COMMAND:
            return self.rollback()
        if target == DUMP_COMMAND:
            return self.dump()
        return self.apply(parse_action(target, action, arg), critical)

    def find(self, target: str | Path, critical: bool = True) -> Path | None:
        return self.apply(Find(target), critical)

    def read(self, target: str | Path, critical: bool = True) -> bytes | None:
        return self.apply(Read(target), critical)

    def write(
        self, target: str | Path, content: bytes | str, critical: bool = True
    ) -> Path:
        return self.apply(Write(target, content), critical)

    def delete(self, target: str | Path, critical: bool = True) -> Path | None:
        return self.apply(Delete(target), critical)

    def copy(
        self, target: str | Path, destination: str | Path, critical: bool = True
    ) -> Path | None:
        return self.apply(Copy(target, destination), critical)

    def move(
        self, target: str | Path, destination: str | Path, critical: bool = True
    ) -> Path | None:
        return self.apply(Move(target, destination), critical)

    def rollback(self) -> RollbackReport:
        """Undo every journaled mutation, newest first."""
        return self._journal.rollback()

    def dump(self) -> list[str]:
        """Paths touched so far, oldest first."""
        return self._journal.dump()

    def entries(self) -> tuple[JournalEntry, ...]:
        return self._journal.entries()

    def describe(self) -> list[dict[str, Any]]:
        return self._journal.describe()

    @contextmanager
    def transaction(self) -> Iterator[MutationExecutor]:
        """Roll back everything journaled so far if the block raises."""
        try:
            yield self
        except BaseException:
            report = self.rollback()
            if not report.ok:
                safe_log(
                    self._logger,
                    "error",
                    "executor.partial_rollback",
                    unrecovered=[str(path) for path in report.unrecovered],
                )
            raise

    def _execute(self, action: Action, critical: bool) -> Outcome:
        if isinstance(action, Write):
            return self._write(action)

        source = self._resolver.resolve(action.target, critical=critical)
        if source is None:
            return Outcome.absent()

        if isinstance(action, Find):
            return Outcome.success(source, path=source)
        if isinstance(action, Read):
            content = self._guard("read", source, source.read_bytes)
            return Outcome.success(content, path=source)
        if isinstance(action, Delete):
            return self._delete(source)
        if isinstance(action, Copy):
            return self._transfer(ActionKind.COPY, source, action.destination)
        if isinstance(action, Move):
            return self._transfer(ActionKind.MOVE, source, action.destination)

        raise TypeError(f"Unsupported action: {action!r}")

    def _write(self, action: Write) -> Outcome:
        path = self._resolver.locate(action.target)
        if path.is_dir() and not path.is_symlink():
            raise MutationFailed("write", path, "target is a directory")

        prior_link = self._guard("write", path, lambda: read_link(path))
        prior = None
        if prior_link is None:
            prior = self._guard("write", path, lambda: read_prior(path))
        created = missing_parents(path)

        try:
            write_atomic(path, action.payload())
        except OSError as exc:
            self._discard_dirs(created)
            raise MutationFailed("write", path, str(exc)) from exc

        self._journal.record(
            ActionKind.WRITE,
            path,
            prior_content=prior,
            prior_link=prior_link,
            created_dirs=created,
        )
        existed = prior is not None or prior_link is not None
        debug(f"Wrote {path} ({'replaced' if existed else 'created'})")
        return Outcome.success(path, path=path)

    def _delete(self, path: Path) -> Outcome:
        if path.is_dir() and not path.is_symlink():
            raise MutationFailed("delete", path, "target is a directory")

        # A symlink is removed on its own; the file it points to is untouched.
        prior_link = self._guard("delete", path, lambda: read_link(path))
        prior = None
        if prior_link is None:
            prior = self._guard("delete", path, path.read_bytes)
        self._guard("delete", path, path.unlink)

        self._journal.record(
            ActionKind.DELETE, path, prior_content=prior, prior_link=prior_link
        )
        debug(f"Deleted {path}")
        return Outcome.success(path, path=path)

    def _transfer(
        self, kind: ActionKind, source: Path, destination: str | Path
    ) -> Outcome:
        verb = kind.value
        if source.is_dir() and not source.is_symlink():
            raise MutationFailed(verb, source, "source is a directory")

        dst = self._destination(verb, source, destination)
        if dst == source:
            raise MutationFailed(verb, source, "source and destination are the same")
        if dst.is_dir() and not dst.is_symlink():
            raise MutationFailed(verb, dst, "destination is a directory")

        displaced_link = self._guard(verb, dst, lambda: read_link(dst))
        displaced = None
        if displaced_link is None:
            displaced = self._guard(verb, dst, lambda: read_prior(dst))
        created = missing_parents(dst)

        if kind is ActionKind.COPY:

            def perform() -> None:
                # Replace a symlink destination rather than writing through it.
                if displaced_link is not None:
                    dst.unlink()
                ensure_parent_dir(dst)
                shutil.copy2(source, dst)

        else:

            def perform() -> None:
                relocate(source, dst)

        try:
            perform()
        except OSError as exc:
            self._restore_destination(dst, displaced, displaced_link)
            self._discard_dirs(created)
            raise MutationFailed(verb, source, str(exc)) from exc

        self._journal.record(
            kind,
            source,
            secondary_path=dst,
            displaced_content=displaced,
            displaced_link=displaced_link,
            created_dirs=created,
        )
        debug(f"{verb.capitalize()} {source} -> {dst}")
        return Outcome.success(dst, path=source)

    def _destination(self, verb: str, source: Path, destination: str | Path) -> Path:
        if not str(destination).strip():
            raise MutationFailed(verb, source, "destination must not be empty")

        dst = self._resolver.locate(destination)
        if dst.is_dir():
            dst = dst / source.name
        return dst

    @staticmethod
    def _restore_destination(
        dst: Path, displaced: bytes | None, displaced_link: str | None
    ) -> None:
        # Put the destination back the way it was before the failed transfer.
        try:
            if displaced is None and displaced_link is None:
                dst.unlink(missing_ok=True)
            else:
                restore_snapshot(dst, displaced, displaced_link)
        except OSError as exc:
            debug(f"Could not restore destination {dst}: {exc}")

    @staticmethod
    def _discard_dirs(created: list[Path]) -> None:
        try:
            remove_empty_dirs(created)
        except OSError as exc:
            debug(f"Could not remove created directories: {exc}")

    @staticmethod
    def _guard(action: str, path: Path, call: Any) -> Any:
        try:
            return call()
        except OSError as exc:
            raise MutationFailed(action, path, str(exc)) from exc
