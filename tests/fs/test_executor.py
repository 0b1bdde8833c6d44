"""Tests for the mutation executor and end-to-end rollback behavior."""

import os
import unicodedata
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from filejournal.core.errors import MutationFailed, PathNotFound
from filejournal.fs.actions import ActionKind, Copy, Delete, Find, Read, Write
from filejournal.fs.executor import MutationExecutor
from filejournal.fs.journal import Journal, RollbackReport
from filejournal.fs.paths import PathResolver


class TestReadOnlyActions:
    """Test find and read, which never touch the journal."""

    def test_find_returns_resolved_path(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "x.txt").write_text("x")

        assert executor.find("x.txt") == root / "x.txt"
        assert executor.dump() == []

    def test_read_returns_bytes(self, executor: MutationExecutor, root: Path) -> None:
        (root / "x.txt").write_text("hello")

        assert executor.read("x.txt") == b"hello"
        assert executor.dump() == []

    def test_missing_critical_raises_path_not_found(
        self, executor: MutationExecutor
    ) -> None:
        with pytest.raises(PathNotFound):
            executor.read("missing.txt")

    def test_missing_non_critical_returns_none(self, executor: MutationExecutor) -> None:
        assert executor.find("missing.txt", critical=False) is None
        assert executor.read("missing.txt", critical=False) is None
        assert executor.delete("missing.txt", critical=False) is None
        assert executor.dump() == []

    def test_read_io_error_fails_even_when_not_critical(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "x.txt").write_text("x")

        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            with pytest.raises(MutationFailed, match="denied"):
                executor.read("x.txt", critical=False)


class TestRun:
    """Test the non-raising result form."""

    def test_run_reports_ok(self, executor: MutationExecutor, root: Path) -> None:
        (root / "x.txt").write_text("x")

        outcome = executor.run(Find("x.txt"))

        assert outcome.ok
        assert outcome.value == root / "x.txt"

    def test_run_reports_absent(self, executor: MutationExecutor) -> None:
        outcome = executor.run(Read("missing.txt"), critical=False)

        assert outcome.is_absent
        assert outcome.unwrap() is None

    def test_run_reports_failure_and_logs(
        self, executor: MutationExecutor, logger: Mock
    ) -> None:
        outcome = executor.run(Delete("missing.txt"))

        assert outcome.failed
        assert isinstance(outcome.error, PathNotFound)
        logger.error.assert_called_once()
        assert logger.error.call_args.args[0] == "executor.failed"
        with pytest.raises(PathNotFound):
            outcome.unwrap()


class TestMutations:
    """Test that each mutating action applies and journals exactly once."""

    def test_write_creates_file_under_first_root(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        path = executor.write("out/new.txt", "data")

        assert path == root / "out" / "new.txt"
        assert path.read_text() == "data"
        assert executor.dump() == [str(path)]

    def test_write_overwrites_existing(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "x.txt").write_text("old")

        executor.write("x.txt", b"new")

        assert (root / "x.txt").read_bytes() == b"new"
        (entry,) = executor.entries()
        assert entry.action is ActionKind.WRITE
        assert entry.prior_content == b"old"

    def test_write_to_directory_fails(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "sub").mkdir()

        with pytest.raises(MutationFailed, match="directory"):
            executor.write("sub", "data")
        assert executor.dump() == []

    def test_failed_write_is_not_journaled(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "x.txt").write_text("old")

        with patch(
            "filejournal.fs.executor.write_atomic", side_effect=OSError("disk full")
        ):
            with pytest.raises(MutationFailed, match="disk full"):
                executor.write("x.txt", "new", critical=False)

        assert (root / "x.txt").read_text() == "old"
        assert executor.dump() == []

    def test_delete_removes_file(self, executor: MutationExecutor, root: Path) -> None:
        (root / "x.txt").write_text("bye")

        executor.delete("x.txt")

        assert not (root / "x.txt").exists()
        (entry,) = executor.entries()
        assert entry.prior_content == b"bye"

    def test_copy_duplicates_file(self, executor: MutationExecutor, root: Path) -> None:
        (root / "a.txt").write_text("A")

        dst = executor.copy("a.txt", "b.txt")

        assert dst == root / "b.txt"
        assert (root / "a.txt").read_text() == "A"
        assert dst.read_text() == "A"
        (entry,) = executor.entries()
        assert entry.secondary_path == dst
        assert entry.displaced_content is None

    def test_copy_into_directory_keeps_name(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "a.txt").write_text("A")
        (root / "dist").mkdir()

        dst = executor.copy("a.txt", "dist")

        assert dst == root / "dist" / "a.txt"
        assert dst.read_text() == "A"

    def test_copy_onto_itself_fails(self, executor: MutationExecutor, root: Path) -> None:
        (root / "a.txt").write_text("A")

        with pytest.raises(MutationFailed, match="same"):
            executor.copy("a.txt", "a.txt")

    def test_move_relocates_file(self, executor: MutationExecutor, root: Path) -> None:
        (root / "a.txt").write_text("A")

        dst = executor.move("a.txt", "nested/b.txt")

        assert not (root / "a.txt").exists()
        assert dst.read_text() == "A"
        assert executor.dump() == [str(root / "a.txt")]

    def test_failed_move_keeps_source_and_destination(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "a.txt").write_text("A")
        (root / "b.txt").write_text("B")

        with patch(
            "filejournal.fs.executor.relocate", side_effect=OSError("device busy")
        ):
            with pytest.raises(MutationFailed, match="device busy"):
                executor.move("a.txt", "b.txt")

        assert (root / "a.txt").read_text() == "A"
        assert (root / "b.txt").read_text() == "B"
        assert executor.dump() == []

    def test_move_missing_source_non_critical(self, executor: MutationExecutor) -> None:
        assert executor.move("missing.txt", "b.txt", critical=False) is None
        assert executor.dump() == []


class TestRollback:
    """Test rollback behavior across executed mutations."""

    def test_write_round_trip_existing_file(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "x.txt").write_bytes(b"\x00binary\xff")

        executor.write("x.txt", "replaced")
        executor.rollback()

        assert (root / "x.txt").read_bytes() == b"\x00binary\xff"

    def test_new_file_write_rollback_leaves_no_file(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        executor.write("new.txt", "data")

        executor.rollback()

        assert not (root / "new.txt").exists()

    def test_empty_file_restored_as_empty(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "empty.txt").write_bytes(b"")

        executor.write("empty.txt", "filled")
        executor.rollback()

        assert (root / "empty.txt").exists()
        assert (root / "empty.txt").read_bytes() == b""

    def test_overlapping_writes_undone_in_reverse(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        """B overwrites a file A created; C deletes it; all undone."""
        executor.write("x.txt", "A")
        executor.write("x.txt", "B")
        executor.delete("x.txt")

        # Stop after undoing C and B to inspect A's content
        entries = executor.entries()
        entries[2].revert()
        entries[1].revert()
        assert (root / "x.txt").read_text() == "A"

        executor.rollback()
        assert not (root / "x.txt").exists()

    def test_full_scenario_restores_everything(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "keep.txt").write_text("keep")
        (root / "doomed.txt").write_text("doomed")
        (root / "mover.txt").write_text("mover")

        executor.write("keep.txt", "changed")
        executor.delete("doomed.txt")
        executor.copy("keep.txt", "copy.txt")
        executor.move("mover.txt", "moved/mover.txt")

        report = executor.rollback()

        assert report.ok
        assert report.restored == 4
        assert (root / "keep.txt").read_text() == "keep"
        assert (root / "doomed.txt").read_text() == "doomed"
        assert not (root / "copy.txt").exists()
        assert (root / "mover.txt").read_text() == "mover"
        assert not (root / "moved" / "mover.txt").exists()

    def test_copy_over_existing_destination_restored(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "a.txt").write_text("A")
        (root / "b.txt").write_text("B")

        executor.copy("a.txt", "b.txt")
        assert (root / "b.txt").read_text() == "A"

        executor.rollback()
        assert (root / "b.txt").read_text() == "B"

    def test_move_over_existing_destination_restored(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "a.txt").write_text("A")
        (root / "b.txt").write_text("B")

        executor.move("a.txt", "b.txt")
        executor.rollback()

        assert (root / "a.txt").read_text() == "A"
        assert (root / "b.txt").read_text() == "B"

    def test_copy_then_move_of_copy_rolls_back_cleanly(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        """A copy whose destination is later moved unwinds through both entries."""
        (root / "a.txt").write_text("A")

        executor.copy("a.txt", "b.txt")
        executor.move("b.txt", "c.txt")
        report = executor.rollback()

        assert report.ok
        assert (root / "a.txt").read_text() == "A"
        assert not (root / "b.txt").exists()
        assert not (root / "c.txt").exists()

    def test_externally_deleted_file_does_not_block_others(
        self, executor: MutationExecutor, root: Path, logger: Mock
    ) -> None:
        (root / "first.txt").write_text("first")
        (root / "second.txt").write_text("second")

        executor.write("first.txt", "changed")
        executor.move("second.txt", "moved.txt")
        executor.write("third.txt", "new")

        (root / "moved.txt").unlink()
        report = executor.rollback()

        assert report.restored == 2
        assert report.unrecovered == [root / "second.txt"]
        assert (root / "first.txt").read_text() == "first"
        assert not (root / "third.txt").exists()
        assert logger.warning.call_args.args[0] == "journal.rollback_step_failed"

    def test_dump_empty_after_rollback(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        executor.write("a.txt", "a")
        executor.write("b.txt", "b")
        assert executor.dump() == [str(root / "a.txt"), str(root / "b.txt")]

        executor.rollback()

        assert executor.dump() == []
        assert executor.rollback().attempted == 0


class TestDispatch:
    """Test the string form used by plans and the CLI."""

    def test_pseudo_paths_are_commands(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        executor.dispatch("a.txt", "write", "a")

        assert executor.dispatch("dump") == [str(root / "a.txt")]
        report = executor.dispatch("rollback")

        assert isinstance(report, RollbackReport)
        assert report.restored == 1
        assert not (root / "a.txt").exists()

    def test_commands_win_over_real_files(
        self, executor: MutationExecutor, root: Path, isolated_cwd: Path
    ) -> None:
        (isolated_cwd / "dump").write_text("not a command")

        assert executor.dispatch("dump", "read") == []

    def test_unknown_action_rejected(self, executor: MutationExecutor) -> None:
        with pytest.raises(ValueError, match="Unknown action"):
            executor.dispatch("a.txt", "chmod")

    def test_default_action_is_find(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "a.txt").write_text("a")

        assert executor.dispatch("a.txt") == root / "a.txt"


class TestTransaction:
    """Test the transaction context manager."""

    def test_exception_rolls_back_and_reraises(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "x.txt").write_text("original")

        with pytest.raises(RuntimeError, match="generator crashed"):
            with executor.transaction() as tx:
                tx.write("x.txt", "partial")
                tx.write("y.txt", "partial")
                raise RuntimeError("generator crashed")

        assert (root / "x.txt").read_text() == "original"
        assert not (root / "y.txt").exists()
        assert executor.dump() == []

    def test_success_keeps_changes(self, executor: MutationExecutor, root: Path) -> None:
        with executor.transaction() as tx:
            tx.write("x.txt", "kept")

        assert (root / "x.txt").read_text() == "kept"
        assert executor.dump() == [str(root / "x.txt")]


class TestJournalOwnership:
    """Test journals passed in explicitly by the caller."""

    def test_separate_executors_have_separate_journals(self, root: Path) -> None:
        resolver = PathResolver([root])
        first = MutationExecutor(resolver, Journal(Mock()), logger=Mock())
        second = MutationExecutor(resolver, Journal(Mock()), logger=Mock())

        first.apply(Write("a.txt", "a"))
        second.apply(Copy("a.txt", "b.txt"))
        first.rollback()

        assert not (root / "a.txt").exists()
        assert (root / "b.txt").exists()
        assert second.dump() == [str(root / "a.txt")]


class TestFileNames:
    """Test that file names reach the disk exactly as given."""

    def test_write_to_decomposed_name_overwrites_in_place(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        name = unicodedata.normalize("NFD", "café.txt")
        (root / name).write_text("old menu")

        executor.write(name, "new menu")

        assert os.listdir(root) == [name]
        assert (root / name).read_text() == "new menu"

        executor.rollback()

        assert os.listdir(root) == [name]
        assert (root / name).read_text() == "old menu"


class TestSymlinks:
    """Test that symlinks are journaled as links, never through their target."""

    @pytest.fixture
    def link(self, root: Path) -> Path:
        (root / "real.txt").write_text("real")
        os.symlink("real.txt", root / "link.txt")
        return root / "link.txt"

    def test_delete_removes_only_the_link(
        self, executor: MutationExecutor, root: Path, link: Path
    ) -> None:
        executor.delete("link.txt")

        assert not link.is_symlink()
        assert (root / "real.txt").read_text() == "real"

        report = executor.rollback()

        assert report.ok
        assert link.is_symlink()
        assert os.readlink(link) == "real.txt"
        assert (root / "real.txt").read_text() == "real"

    def test_delete_dangling_link(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        os.symlink("gone.txt", root / "dangling.txt")

        executor.delete("dangling.txt")
        assert not (root / "dangling.txt").is_symlink()

        executor.rollback()
        assert os.readlink(root / "dangling.txt") == "gone.txt"

    def test_move_relocates_only_the_link(
        self, executor: MutationExecutor, root: Path, link: Path
    ) -> None:
        (root / "elsewhere").mkdir()

        executor.move("link.txt", "elsewhere/link.txt")

        assert (root / "elsewhere" / "link.txt").is_symlink()
        assert not link.is_symlink()
        assert (root / "real.txt").read_text() == "real"

        executor.rollback()

        assert link.is_symlink()
        assert not (root / "elsewhere" / "link.txt").is_symlink()
        assert (root / "real.txt").read_text() == "real"

    def test_write_replaces_link_and_rollback_restores_it(
        self, executor: MutationExecutor, root: Path, link: Path
    ) -> None:
        executor.write("link.txt", "standalone")

        assert not link.is_symlink()
        assert link.read_text() == "standalone"
        assert (root / "real.txt").read_text() == "real"

        executor.rollback()

        assert os.readlink(link) == "real.txt"

    def test_copy_onto_link_does_not_write_through(
        self, executor: MutationExecutor, root: Path, link: Path
    ) -> None:
        (root / "src.txt").write_text("incoming")

        executor.copy("src.txt", "link.txt")

        assert not link.is_symlink()
        assert link.read_text() == "incoming"
        assert (root / "real.txt").read_text() == "real"

        executor.rollback()

        assert os.readlink(link) == "real.txt"
        assert (root / "real.txt").read_text() == "real"


class TestCreatedDirectories:
    """Test that rollback removes the directories a mutation created."""

    def test_write_rollback_removes_new_parents(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        executor.write("new/deep/x.txt", "data")

        entry = executor.entries()[0]
        assert entry.created_dirs == (root / "new", root / "new" / "deep")

        report = executor.rollback()

        assert report.ok
        assert not (root / "new").exists()

    def test_copy_and_move_rollback_remove_new_parents(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "a.txt").write_text("A")
        (root / "b.txt").write_text("B")

        executor.copy("a.txt", "copies/a.txt")
        executor.move("b.txt", "archive/2024/b.txt")
        executor.rollback()

        assert sorted(os.listdir(root)) == ["a.txt", "b.txt"]

    def test_rollback_keeps_directory_with_foreign_files(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        executor.write("new/deep/x.txt", "data")
        (root / "new" / "notes.txt").write_text("not journaled")

        report = executor.rollback()

        assert report.ok
        assert not (root / "new" / "deep").exists()
        assert (root / "new" / "notes.txt").read_text() == "not journaled"

    def test_existing_parents_are_not_recorded(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        (root / "existing").mkdir()

        executor.write("existing/x.txt", "data")
        assert executor.entries()[0].created_dirs == ()

        executor.rollback()

        assert not (root / "existing" / "x.txt").exists()
        assert (root / "existing").is_dir()

    def test_failed_write_removes_new_parents(
        self, executor: MutationExecutor, root: Path
    ) -> None:
        with patch(
            "filejournal.fs.paths.os.replace", side_effect=OSError("disk full")
        ):
            with pytest.raises(MutationFailed, match="disk full"):
                executor.write("new/deep/x.txt", "data")

        assert not (root / "new").exists()
        assert executor.dump() == []
