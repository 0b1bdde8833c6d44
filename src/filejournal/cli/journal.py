"""CLI commands for running journaled filesystem plans."""

from __future__ import annotations

import importlib
import json
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from rich.console import Console

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from filejournal.core.errors import FileJournalError, PlanError
from filejournal.core.plan import PlanStep, load_plan
from filejournal.core.settings import JournalSettings
from filejournal.fs.executor import MutationExecutor
from filejournal.fs.journal import RollbackReport
from filejournal.fs.paths import PathResolver
from filejournal.utils.logs import configure_logging

app: TyperType = typer.Typer(
    help="Apply filesystem changes through a rollback journal.",
    no_args_is_help=True,
)

PlanArgument = Annotated[
    Path,
    typer.Argument(help="JSON file with the steps to apply."),
]
PathArgument = Annotated[
    str,
    typer.Argument(help="Path to resolve, absolute or relative to a root."),
]
RootOption = Annotated[
    list[Path] | None,
    typer.Option(
        "--root",
        help="Root directory to resolve against; repeat for fallbacks.",
    ),
]
KeepGoingFlag = Annotated[
    bool,
    typer.Option("--keep-going", help="Continue after a failed step."),
]
NoRollbackFlag = Annotated[
    bool,
    typer.Option("--no-rollback", help="Keep applied changes when a step fails."),
]
OptionalFlag = Annotated[
    bool,
    typer.Option("--optional", help="Treat an unresolved path as absent."),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of console output."),
]


def _build_executor(roots: list[Path] | None) -> MutationExecutor:
    settings = JournalSettings.from_env().with_roots(roots or [])
    configure_logging(
        settings.log_level, settings.log_json, debug_output=settings.debug
    )
    return MutationExecutor(PathResolver(settings.effective_roots()))


def _render(value: Any) -> Any:
    """Convert step results to JSON-friendly values."""
    if isinstance(value, RollbackReport):
        return value.to_dict()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Path):
        return str(value)
    return value


def _run_step(executor: MutationExecutor, index: int, step: PlanStep) -> dict[str, Any]:
    result: dict[str, Any] = {"step": index, "label": step.label()}
    value = executor.dispatch(step.target, step.action, step.arg, step.critical)

    if value is None and not step.is_command:
        result["status"] = "absent"
    else:
        result["status"] = "ok"
        result["value"] = _render(value)
    return result


def run_plan(
    plan: PlanArgument,
    root: RootOption = None,
    keep_going: KeepGoingFlag = False,
    no_rollback: NoRollbackFlag = False,
    json_output: JsonFlag = False,
) -> None:
    """Apply a plan of steps, rolling back if any step fails."""

    try:
        steps = load_plan(plan)
    except PlanError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    executor = _build_executor(root)
    ui = Console(soft_wrap=True, highlight=False)
    results: list[dict[str, Any]] = []
    failed = False

    for index, step in enumerate(steps, start=1):
        try:
            result = _run_step(executor, index, step)
        except FileJournalError as exc:
            failed = True
            results.append(
                {"step": index, "label": step.label(), "status": "failed"}
                | exc.to_dict()
            )
            if not json_output:
                ui.print(f"❌ [red]FAILED[/red] {step.label()} ({exc})")
            if keep_going:
                continue
            break

        results.append(result)
        if not json_output:
            _show_step(ui, result)

    rollback: RollbackReport | None = None
    if failed and not no_rollback:
        rollback = executor.rollback()

    if json_output:
        payload = {
            "ok": not failed,
            "steps": results,
            "journal": executor.describe(),
            "rollback": rollback.to_dict() if rollback else None,
        }
        typer.echo(json.dumps(payload, indent=2))
    elif rollback is not None:
        _show_rollback(ui, rollback)

    if failed:
        raise typer.Exit(code=1)


def _show_step(ui: Console, result: dict[str, Any]) -> None:
    label = result["label"]
    if result["status"] == "absent":
        ui.print(f"🔍 [blue]ABSENT[/blue] {label}")
        return

    value = result.get("value")
    if label == "dump":
        ui.print(f"📋 [blue]DUMP[/blue] {len(value)} path(s)")
        for path in value:
            ui.print(f"   {path}")
    elif label == "rollback":
        ui.print(
            f"↩️ [blue]ROLLBACK[/blue] restored {value['restored']}, "
            f"failed {value['failed']}"
        )
    else:
        ui.print(f"✅ [green]APPLIED[/green] {label}")


def _show_rollback(ui: Console, report: RollbackReport) -> None:
    ui.print(f"🔄 [yellow]Rolled back[/yellow] {report.restored} change(s)")
    for path in report.unrecovered:
        ui.print(f"❌ [red]NOT RECOVERED[/red] {path}")


def find_path(
    path: PathArgument,
    root: RootOption = None,
    optional: OptionalFlag = False,
) -> None:
    """Print the resolved location of a path."""

    executor = _build_executor(root)
    try:
        found = executor.find(path, critical=not optional)
    except FileJournalError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    if found is None:
        typer.secho(f"Not found: {path}", err=True, fg=typer.colors.YELLOW)
        return
    typer.echo(str(found))


def read_path(path: PathArgument, root: RootOption = None) -> None:
    """Print the content of a resolved file."""

    executor = _build_executor(root)
    try:
        content = executor.read(path)
    except FileJournalError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    typer.echo(_render(content), nl=False)


def run_cli(args: Sequence[str] | None = None) -> None:
    app(args=args)


app.command("run")(run_plan)
app.command("find")(find_path)
app.command("read")(read_path)
