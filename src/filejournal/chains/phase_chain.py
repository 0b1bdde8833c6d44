"""Phase chain for running multi-step operations with automatic rollback.

A phase is a named callable that receives the executor and performs its
mutations through it. When a phase raises, the chain rolls the journal
back and reports which paths could not be recovered.
"""

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console

from filejournal.fs.executor import MutationExecutor
from filejournal.fs.journal import RollbackReport

PhaseFn = Callable[[MutationExecutor], Any]
Hook = Callable[[str, MutationExecutor], None]
RollbackHook = Callable[[RollbackReport], None]


@dataclass
class Phase:
    """A named step of a logical operation.

    Attributes:
        name: Label used in logs and console output
        run: Callable performing the phase's mutations
    """

    name: str
    run: PhaseFn


@dataclass
class PhaseReport:
    """Summary of a phase chain run."""

    run_id: str
    completed: list[str] = field(default_factory=list)
    failed_phase: str | None = None
    error: str | None = None
    rollback: RollbackReport | None = None
    touched: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed_phase is None

    @property
    def unrecovered(self) -> list[Path]:
        if self.rollback is None:
            return []
        return self.rollback.unrecovered


class PhaseChain:
    """Runs phases in order against one executor.

    Hooks are called at the chain's call sites; the journal itself has no
    hook points.
    """

    def __init__(
        self,
        executor: MutationExecutor,
        *,
        before_phase: Sequence[Hook] = (),
        after_phase: Sequence[Hook] = (),
        after_rollback: Sequence[RollbackHook] = (),
        rollback_on_failure: bool = True,
        logger: Any = None,
        ui: Console | None = None,
    ) -> None:
        """Initialize phase chain.

        Args:
            executor: Executor owning the journal for this operation
            before_phase: Called with the phase name before each phase
            after_phase: Called with the phase name after each successful phase
            after_rollback: Called with the report after an automatic rollback
            rollback_on_failure: Roll the journal back when a phase raises
            logger: Optional structlog logger instance
            ui: Optional Rich console for output
        """
        self._executor = executor
        self._before_phase = list(before_phase)
        self._after_phase = list(after_phase)
        self._after_rollback = list(after_rollback)
        self._rollback_on_failure = rollback_on_failure
        self._logger = logger or structlog.get_logger()
        self._ui = ui or Console(stderr=True)

    def run(self, phases: Sequence[Phase]) -> PhaseReport:
        """Run ``phases`` in order, stopping at the first failure.

        Args:
            phases: Phases to run

        Returns:
            PhaseReport with completed phases and rollback outcome
        """
        report = PhaseReport(run_id=str(uuid.uuid4()))
        bound_logger = self._logger.bind(run_id=report.run_id, phases=len(phases))

        for phase in phases:
            start_time = time.time()
            try:
                for hook in self._before_phase:
                    hook(phase.name, self._executor)
                phase.run(self._executor)
                for hook in self._after_phase:
                    hook(phase.name, self._executor)
            except Exception as e:
                report.failed_phase = phase.name
                report.error = str(e)
                report.touched = self._executor.dump()
                bound_logger.error(
                    "phase.failed",
                    phase=phase.name,
                    error=str(e),
                    touched=len(report.touched),
                )
                self._ui.print(f"❌ [red]FAILED[/red] {phase.name}: {e}")

                if self._rollback_on_failure:
                    report.rollback = self._rollback(bound_logger)
                break

            elapsed_ms = int((time.time() - start_time) * 1000)
            report.completed.append(phase.name)
            bound_logger.info("phase.completed", phase=phase.name, elapsed_ms=elapsed_ms)
            self._ui.print(f"✅ [green]DONE[/green] {phase.name}")

        if report.ok:
            report.touched = self._executor.dump()
        return report

    def _rollback(self, bound_logger: Any) -> RollbackReport:
        """Roll the journal back and notify after_rollback hooks."""
        self._ui.print("🔄 [yellow]Rolling back...[/yellow]")
        result = self._executor.rollback()

        for failure in result.failures:
            self._ui.print(f"❌ [red]Failed to restore[/red] {failure.path}")

        bound_logger.info(
            "phase.rollback",
            restored=result.restored,
            failed=len(result.failures),
        )
        if result.ok:
            self._ui.print("✅ [green]Rollback completed[/green]")
        else:
            self._ui.print(
                f"⚠️ [yellow]Rollback incomplete[/yellow]: "
                f"{len(result.failures)} path(s) not recovered"
            )

        for hook in self._after_rollback:
            hook(result)
        return result
