"""Pipeline driver: sequential stage execution with a fail-fast quality gate."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from verifyall.models.pipeline import StageRecord, StageStatus
from verifyall.observability.logging import get_logger, stage_context

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from verifyall.pipeline.runner import Runner
    from verifyall.pipeline.stages import Stage

log = get_logger(__name__)


class PipelineStatus(StrEnum):
    """Overall result of a run."""

    PASSED = "passed"
    FAILED = "failed"


@dataclass
class PipelineOutcome:
    """Aggregate result of one pipeline run.

    This is the only externally observable result; it maps onto the
    process exit code.
    """

    overall_status: PipelineStatus = PipelineStatus.PASSED
    first_failure: str | None = None
    records: list[StageRecord] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.overall_status is PipelineStatus.PASSED

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    @property
    def warnings(self) -> list[StageRecord]:
        return [record for record in self.records if record.warning]

    @property
    def skipped(self) -> list[str]:
        return [r.stage for r in self.records if r.status is StageStatus.SKIPPED]


def banner(console: Console, text: str) -> None:
    """Print a stage banner."""
    console.print(f"[bold]======  {escape(text)}  ======[/bold]", highlight=False)


class PipelineDriver:
    """Run stages strictly in order, one at a time.

    For each stage the skip predicate is evaluated first. A skipped stage
    never runs its command and never affects the outcome. A failing
    mandatory stage stops the run; a failing optional stage is recorded as
    a warning and the run continues.
    """

    def __init__(
        self,
        runner: Runner,
        console: Console | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._runner = runner
        self._console = console or Console()
        self._timer = timer

    def run(self, stages: Sequence[Stage]) -> PipelineOutcome:
        """Execute stages and produce the pipeline outcome.

        Args:
            stages: Stages in execution order.

        Returns:
            PipelineOutcome with one record per stage reached.
        """
        outcome = PipelineOutcome()
        log.info("pipeline_start", stages=[stage.name for stage in stages])

        for stage in stages:
            with stage_context(stage.name):
                record = self._run_stage(stage)
            outcome.records.append(record)
            if record.status is StageStatus.FAILED_HARD:
                outcome.overall_status = PipelineStatus.FAILED
                outcome.first_failure = stage.name
                break

        if outcome.passed:
            banner(self._console, "OK")
            log.info("pipeline_passed", warnings=len(outcome.warnings))
        else:
            self._console.print(
                f"[red]Pipeline aborted at stage '{escape(outcome.first_failure or '')}'.[/red]"
            )
            log.error("pipeline_aborted", stage=outcome.first_failure)
        return outcome

    def _run_stage(self, stage: Stage) -> StageRecord:
        # Banner first: warning-skip predicates may print bootstrap output
        if stage.warn_on_skip:
            banner(self._console, stage.title)
        reason = stage.evaluate_skip()
        if reason is not None:
            return self._skip(stage, reason)

        if not stage.warn_on_skip:
            banner(self._console, stage.title)
        log.info("stage_start", required=stage.required)

        start = self._timer()
        exit_code = self._runner.run(stage.command, env=stage.env, cwd=stage.cwd)
        duration = self._timer() - start

        if exit_code == 0:
            if stage.on_success is not None:
                stage.on_success()
            log.info("stage_complete", duration=f"{duration:.2f}s")
            return StageRecord(
                stage=stage.name,
                status=StageStatus.SUCCEEDED,
                exit_code=0,
                duration_seconds=duration,
            )

        detail = stage.failure_hint or f"'{stage.title}' exited with status {exit_code}"
        if stage.required:
            self._console.print(f"[red]{escape(detail)}[/red]")
            log.error("stage_failed", returncode=exit_code)
            status = StageStatus.FAILED_HARD
        else:
            self._console.print(f"[yellow]warning:[/yellow] {escape(detail)}")
            log.warning("optional_stage_failed", returncode=exit_code)
            status = StageStatus.FAILED_SOFT

        return StageRecord(
            stage=stage.name,
            status=status,
            detail=detail,
            warning=not stage.required,
            exit_code=exit_code,
            duration_seconds=duration,
        )

    def _skip(self, stage: Stage, reason: str) -> StageRecord:
        if stage.warn_on_skip:
            self._console.print(f"[yellow]{escape(reason)}[/yellow]")
            log.warning("stage_skipped", reason=reason)
        else:
            log.info("stage_skipped", reason=reason)
        return StageRecord(
            stage=stage.name,
            status=StageStatus.SKIPPED,
            detail=reason,
            warning=stage.warn_on_skip,
        )
