"""Shared pipeline models.

A StageRecord is the per-stage entry in a pipeline outcome log. Every
stage that the driver reaches produces exactly one record; stages after
a mandatory failure produce none.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class StageStatus(StrEnum):
    """Terminal state of a single stage within one run."""

    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED_HARD = "failed_hard"
    FAILED_SOFT = "failed_soft"


class StageRecord(BaseModel):
    """Result of evaluating one stage.

    Attributes:
        stage: Stage name.
        status: Terminal state of the stage.
        detail: Skip reason, failure hint or empty string.
        warning: True when the record should be surfaced as a warning
            (tool unavailable, optional stage failed).
        exit_code: Exit status of the collaborator command, None if it never ran.
        duration_seconds: Wall time spent running the command.
    """

    stage: str = Field(min_length=1)
    status: StageStatus
    detail: str = ""
    warning: bool = False
    exit_code: int | None = None
    duration_seconds: float = 0.0

    @property
    def executed(self) -> bool:
        """Whether the stage's command was actually run."""
        return self.status is not StageStatus.SKIPPED
