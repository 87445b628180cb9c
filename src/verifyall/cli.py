"""verifyall CLI - typer application entry point."""

from __future__ import annotations

import atexit
import shlex
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from verifyall.models.pipeline import StageStatus
from verifyall.observability import close_file_logging, configure_logging, get_logger
from verifyall.pipeline.config import ConfigError, resolve_pipeline_config
from verifyall.pipeline.driver import PipelineDriver
from verifyall.pipeline.plan import build_stages, create_prober, create_staleness_gate
from verifyall.pipeline.runner import CommandRunner

if TYPE_CHECKING:
    from verifyall.pipeline.config import PipelineConfig
    from verifyall.pipeline.driver import PipelineOutcome
    from verifyall.pipeline.stages import Stage

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="verifyall",
    help="verifyall: run every check the tree must pass, stopping at the first failure.",
)
console = Console()

STATUS_DISPLAY = {
    StageStatus.SUCCEEDED: "[green]✓[/green] passed",
    StageStatus.SKIPPED: "[dim]○[/dim] skipped",
    StageStatus.FAILED_SOFT: "[yellow]![/yellow] warning",
    StageStatus.FAILED_HARD: "[red]✗[/red] failed",
}

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_root: Path = Path()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {target}/logs/debug.jsonl.",
        ),
    ] = False,
    root: Annotated[
        Path,
        typer.Option(
            "--root",
            "-C",
            help="Project root directory (default: current directory).",
            envvar="VERIFYALL_ROOT",
        ),
    ] = Path(),
) -> None:
    """verifyall: run the full verification pipeline when no command is given."""
    global _verbose, _log_enabled, _root
    _verbose = verbose
    _log_enabled = log
    _root = root

    # Console logging only; file logging needs the target directory from config
    configure_logging(verbosity=verbose)

    if ctx.invoked_subcommand is None:
        _run_pipeline()


def _load_config() -> PipelineConfig:
    """Load configuration for the selected root, exiting on errors."""
    try:
        config = resolve_pipeline_config(_root.resolve())
        # Surface malformed environment toggles before any stage runs
        config.env.backtrace_enabled()
        config.env.no_bytecode_enabled()
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    return config


def _configure_file_logging(config: PipelineConfig) -> None:
    """Configure file logging if --log flag was set."""
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, logs_dir=config.logs_path)
        atexit.register(close_file_logging)


def _create_runner(config: PipelineConfig) -> CommandRunner:
    return CommandRunner(cwd=config.root)


def _print_summary(outcome: PipelineOutcome) -> None:
    table = Table(title="Verification Summary")
    table.add_column("Stage", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Detail", style="dim")
    table.add_column("Time", justify="right")

    for record in outcome.records:
        detail = record.detail.splitlines()[0] if record.detail else ""
        duration = f"{record.duration_seconds:.1f}s" if record.executed else "-"
        table.add_row(
            record.stage,
            STATUS_DISPLAY.get(record.status, str(record.status)),
            escape(detail),
            duration,
        )

    console.print()
    console.print(table)
    console.print()

    if outcome.passed:
        warnings = len(outcome.warnings)
        suffix = f" ({warnings} warning{'s' if warnings != 1 else ''})" if warnings else ""
        console.print(f"[green]✓[/green] [bold]All checks passed{suffix}.[/bold]")
    else:
        console.print(
            f"[red]✗[/red] [bold]Verification failed at "
            f"{escape(outcome.first_failure or '')}.[/bold]"
        )


def _run_pipeline() -> None:
    config = _load_config()
    _configure_file_logging(config)
    log = get_logger(__name__)
    log.debug("config_resolved", root=str(config.root), gates=len(config.gates))

    runner = _create_runner(config)
    stages = build_stages(config, runner, console=console)
    outcome = PipelineDriver(runner, console=console).run(stages)

    _print_summary(outcome)
    if not outcome.passed:
        raise typer.Exit(outcome.exit_code)


@app.command()
def run() -> None:
    """Run the full verification pipeline.

    Stages run in a fixed order and the run stops at the first mandatory
    failure. Exit status is 0 only if every mandatory stage passed.
    """
    _run_pipeline()


def _skip_decision(stage: Stage) -> str:
    reason = stage.evaluate_skip()
    if reason is None:
        return "[green]runs[/green]"
    return f"[yellow]skip:[/yellow] {escape(reason.splitlines()[0])}"


@app.command()
def stages(
    probe: Annotated[
        bool,
        typer.Option(
            "--probe",
            help="Also evaluate skip decisions. Queries tools but installs nothing.",
        ),
    ] = False,
) -> None:
    """List the planned stages and their gates without running any stage.

    With --probe, each stage's skip check is evaluated the way a run would,
    except that a missing cargo-fuzz is reported instead of installed.
    """
    config = _load_config()
    runner = _create_runner(config)

    table = Table(title=f"Verification Plan: {config.root}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage", style="cyan")
    table.add_column("Gate", style="bold")
    table.add_column("Command")
    if probe:
        table.add_column("Decision")

    plan = build_stages(config, runner, console=console, bootstrap=False)
    for idx, stage in enumerate(plan, start=1):
        gate = "required" if stage.required else "optional"
        row = [str(idx), stage.name, gate, escape(shlex.join(stage.command))]
        if probe:
            row.append(_skip_decision(stage))
        table.add_row(*row)

    console.print()
    console.print(table)
    console.print()


@app.command()
def doctor() -> None:
    """Report which optional tools are available and whether Python checks are due."""
    config = _load_config()
    runner = _create_runner(config)
    prober = create_prober(config, runner)

    console.print("[bold]verifyall Doctor[/bold]")
    console.print()
    console.print("[bold]Tools[/bold]")
    for tool_id in prober.tool_ids:
        result = prober.probe(tool_id)
        mark = "[green]✓[/green]" if result.available else "[yellow]○[/yellow]"
        console.print(f"  {mark} {tool_id}: {escape(result.detail)}")

    console.print()
    console.print("[bold]Python checks[/bold]")
    gate = create_staleness_gate(config)
    if gate.should_run():
        watched = escape(str(config.meta_python_path))
        console.print(f"  [yellow]○[/yellow] due (watching {watched})")
    else:
        console.print("  [green]✓[/green] up to date")


@app.command()
def version() -> None:
    """Show version information."""
    from verifyall import __version__

    console.print(f"verifyall v{__version__}")
