"""Path resolution and normalization utilities.

This module turns user-supplied paths into absolute filesystem paths by
trying the path as given, then against an ordered list of root directories.
"""

from __future__ import annotations

import errno
import os
import shutil
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filejournal.core.errors import PathNotFound
from filejournal.utils.logs import debug


def normalize_path(path: str | Path, root: Path | None = None) -> Path:
    """Normalize a path for consistent handling.

    The final component is kept as named: a symlink is not followed and the
    file name is not re-encoded, so the result always refers to the entry
    the caller named. Parent directories are resolved.

    Args:
        path: Path to normalize
        root: Optional root directory for relative paths

    Returns:
        Normalized absolute path
    """
    if not isinstance(path, Path):
        path = Path(path)

    path = path.expanduser()
    if not path.is_absolute() and root is not None:
        path = root / path
    path = Path(os.path.abspath(path))

    if path.name:
        path = path.parent.resolve() / path.name

    return path


def path_present(path: Path) -> bool:
    """Return True if ``path`` exists, counting dangling symlinks."""
    return path.exists() or path.is_symlink()


def read_link(path: Path) -> str | None:
    """Return the target of ``path`` if it is a symlink, else None."""
    if not path.is_symlink():
        return None
    return os.readlink(path)


def missing_parents(path: Path) -> list[Path]:
    """List the ancestors of ``path`` that do not exist yet, outermost first."""
    missing: list[Path] = []
    parent = path.parent
    while not parent.exists() and parent != parent.parent:
        missing.append(parent)
        parent = parent.parent
    missing.reverse()
    return missing


def remove_empty_dirs(dirs: Sequence[Path]) -> list[Path]:
    """Remove ``dirs`` deepest first, skipping any that are not empty.

    Returns:
        The directories that were actually removed
    """
    removed: list[Path] = []
    for directory in sorted(dirs, key=lambda d: len(d.parts), reverse=True):
        if not directory.is_dir() or any(directory.iterdir()):
            debug(f"Keeping directory {directory}")
            continue
        directory.rmdir()
        removed.append(directory)
    return removed


def ensure_parent_dir(path: Path) -> None:
    """Ensure parent directory exists for a path.

    Raises:
        OSError: If parent directory cannot be created
    """
    parent = path.parent
    if not parent.exists():
        parent.mkdir(parents=True, exist_ok=True)


def write_atomic(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` so readers never see a partial file.

    Content goes to a sibling temp file which is fsynced and then renamed
    over the target. Existing permission bits are kept.

    Raises:
        OSError: If any step fails; the temp file is removed
    """
    ensure_parent_dir(path)
    temp_path = path.with_name(f".{path.name}.tmp_{uuid.uuid4().hex[:8]}")
    try:
        with open(temp_path, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def relocate(src: Path, dst: Path) -> None:
    """Move ``src`` to ``dst``, replacing a file already at ``dst``.

    Falls back to copy + fsync + remove across devices.

    Raises:
        OSError: If the move fails; a partial cross-device copy is removed
    """
    ensure_parent_dir(dst)
    try:
        os.replace(src, dst)
        debug(f"Direct rename: {src} -> {dst}")
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        try:
            shutil.copy2(src, dst, follow_symlinks=False)
            if not dst.is_symlink():
                with open(dst, "rb") as handle:
                    os.fsync(handle.fileno())
            src.unlink()
            debug(f"Cross-device move: {src} -> {dst}")
        except OSError:
            dst.unlink(missing_ok=True)
            raise


def read_prior(path: Path) -> bytes | None:
    """Return the current bytes of ``path``, or None if it does not exist.

    Raises:
        OSError: If the path exists but cannot be read
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def restore_snapshot(path: Path, content: bytes | None, link: str | None) -> None:
    """Put back what ``path`` held: a symlink, a file, or nothing at all.

    Raises:
        OSError: If the path cannot be restored. Restoring "nothing" on a
            path that is already gone raises FileNotFoundError.
    """
    if link is not None:
        ensure_parent_dir(path)
        if path_present(path):
            path.unlink()
        os.symlink(link, path)
    elif content is None:
        path.unlink()
    else:
        write_atomic(path, content)


def get_file_stats(path: Path) -> dict[str, Any]:
    """Get file statistics for audit output.

    Returns:
        Dictionary with size and mtime, empty if the file is missing
    """
    try:
        stat = path.stat()
        return {
            "size": stat.st_size,
            "mtime": datetime.fromtimestamp(stat.st_mtime, tz=UTC).isoformat(),
        }
    except OSError:
        return {}


class PathResolver:
    """Resolves user paths against an ordered, read-only root path list."""

    def __init__(self, roots: Sequence[str | Path] = ()) -> None:
        """Initialize resolver.

        Args:
            roots: Candidate base directories, tried in order. The current
                working directory is used when empty.
        """
        normalized = tuple(Path(root).expanduser().resolve() for root in roots)
        self._roots = normalized or (Path.cwd().resolve(),)

    @property
    def roots(self) -> tuple[Path, ...]:
        return self._roots

    def resolve(self, path_like: str | Path, critical: bool = True) -> Path | None:
        """Resolve ``path_like`` to an existing absolute path.

        Args:
            path_like: Absolute or relative path
            critical: Raise when nothing matches instead of returning None

        Returns:
            Absolute path of the first existing candidate, or None

        Raises:
            ValueError: If path_like is empty
            PathNotFound: If nothing matches and critical is True
        """
        if not str(path_like).strip():
            raise ValueError("path must be a non-empty string")

        direct = Path(path_like).expanduser()
        if path_present(direct):
            return normalize_path(direct)

        relative = self._relative_part(direct)
        for root in self._roots:
            candidate = root / relative
            if path_present(candidate):
                debug(f"Resolved {path_like} under root {root}")
                return normalize_path(candidate)

        if critical:
            raise PathNotFound(path_like, self._roots)

        debug(f"Unresolved optional path: {path_like}")
        return None

    def locate(self, path_like: str | Path) -> Path:
        """Return where a file for ``path_like`` lives or should be created.

        Existing paths resolve as usual. New relative paths are placed under
        the first root; new absolute paths are kept as given.
        """
        found = self.resolve(path_like, critical=False)
        if found is not None:
            return found
        return normalize_path(path_like, root=self._roots[0])

    def _relative_part(self, path: Path) -> Path:
        if not path.is_absolute():
            return path
        try:
            return path.relative_to(self._roots[0])
        except ValueError:
            return Path(*path.parts[1:])
