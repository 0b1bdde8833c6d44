"""Pydantic schemas for step plans run by the CLI.

A plan is a JSON list of steps, each naming a target path (or one of the
``rollback``/``dump`` commands), an action and its argument.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from filejournal.core.errors import PlanError
from filejournal.fs.executor import COMMANDS


class PlanStep(BaseModel):
    """One step of a plan.

    Attributes:
        target: Path to act on, or "rollback" / "dump"
        action: Action name; ignored for command targets
        arg: Content for write, destination for copy/move
        critical: Fail the step when the target does not resolve
    """

    target: str
    action: Literal["find", "read", "write", "delete", "copy", "move"] = "find"
    arg: str | None = None
    critical: bool = True

    model_config = {"frozen": True}

    @field_validator("target")
    @classmethod
    def validate_target(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("target must not be empty")
        return value

    @model_validator(mode="after")
    def validate_arg(self) -> PlanStep:
        if self.is_command:
            return self
        if self.action in ("copy", "move") and not (self.arg or "").strip():
            raise ValueError(f"{self.action} requires a destination in 'arg'")
        return self

    @property
    def is_command(self) -> bool:
        return self.target in COMMANDS

    def label(self) -> str:
        if self.is_command:
            return self.target
        if self.action in ("copy", "move"):
            return f"{self.action} {self.target} → {self.arg}"
        return f"{self.action} {self.target}"


def load_plan(source: Path) -> list[PlanStep]:
    """Load and validate a plan file.

    Args:
        source: JSON file holding a list of steps, or an object with a
            "steps" list

    Returns:
        Validated steps in file order

    Raises:
        PlanError: If the file is unreadable, not JSON, or fails validation
    """
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except OSError as e:
        raise PlanError(source, f"cannot read file: {e}") from e
    except json.JSONDecodeError as e:
        raise PlanError(source, f"invalid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("steps")
    if not isinstance(data, list):
        raise PlanError(source, "expected a list of steps")

    steps: list[PlanStep] = []
    for index, raw in enumerate(data, start=1):
        try:
            steps.append(PlanStep.model_validate(raw))
        except ValidationError as e:
            first = e.errors()[0]
            raise PlanError(source, f"step {index}: {first['msg']}") from e
    return steps
