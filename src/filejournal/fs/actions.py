"""Action variants accepted by the mutation executor.

Each action carries only the arguments it needs: ``Write`` carries content,
``Copy`` and ``Move`` carry a destination. ``parse_action`` builds them from
the string form used by plan files and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ActionKind(str, Enum):
    """Kinds of filesystem actions.

    Attributes:
        FIND: Resolve a path only
        READ: Return file content
        WRITE: Replace or create a file
        DELETE: Remove a file
        COPY: Duplicate a file to a destination
        MOVE: Relocate a file to a destination
    """

    FIND = "find"
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    COPY = "copy"
    MOVE = "move"

    @property
    def mutating(self) -> bool:
        """True for kinds that produce a journal entry."""
        return self not in (ActionKind.FIND, ActionKind.READ)


@dataclass(frozen=True)
class Find:
    target: str | Path
    kind = ActionKind.FIND


@dataclass(frozen=True)
class Read:
    target: str | Path
    kind = ActionKind.READ


@dataclass(frozen=True)
class Write:
    target: str | Path
    content: bytes | str
    kind = ActionKind.WRITE

    def payload(self) -> bytes:
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        return bytes(self.content)


@dataclass(frozen=True)
class Delete:
    target: str | Path
    kind = ActionKind.DELETE


@dataclass(frozen=True)
class Copy:
    target: str | Path
    destination: str | Path
    kind = ActionKind.COPY


@dataclass(frozen=True)
class Move:
    target: str | Path
    destination: str | Path
    kind = ActionKind.MOVE


Action = Find | Read | Write | Delete | Copy | Move


def parse_action(
    target: str | Path, action: str, arg: str | bytes | None = None
) -> Action:
    """Build an action from its string name.

    Args:
        target: Path the action applies to
        action: Action name (find, read, write, delete, copy, move)
        arg: Content for write, destination for copy/move

    Returns:
        The matching action variant

    Raises:
        ValueError: If the name is unknown or a required argument is missing
    """
    try:
        kind = ActionKind(action.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown action: {action!r}") from exc

    if kind is ActionKind.FIND:
        return Find(target)
    if kind is ActionKind.READ:
        return Read(target)
    if kind is ActionKind.DELETE:
        return Delete(target)
    if kind is ActionKind.WRITE:
        return Write(target, "" if arg is None else arg)

    if arg is None or (isinstance(arg, str) and not arg.strip()):
        raise ValueError(f"{kind.value} requires a destination")
    destination = arg.decode("utf-8") if isinstance(arg, bytes) else arg
    if kind is ActionKind.COPY:
        return Copy(target, destination)
    return Move(target, destination)
