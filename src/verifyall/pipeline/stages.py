"""Stage definition for the verification pipeline."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

# Returns a human-readable skip reason, or None if the stage should run
SkipPredicate = Callable[[], str | None]
SuccessHook = Callable[[], None]


@dataclass
class Stage:
    """A named unit of work in the pipeline.

    Attributes:
        name: Stage identifier, used in logs, gate overrides and the outcome.
        command: Collaborator command line.
        required: If False, a failing command is downgraded to a warning.
        env: Environment overlay passed to the command.
        skip_when: Predicate evaluated once per run before the command.
        warn_on_skip: Whether a skip is surfaced as a warning (tool
            unavailable) or only logged (nothing to do).
        on_success: Hook run after the command succeeded.
        failure_hint: Operator advice printed when the command fails.
        banner: Banner text printed before the stage; defaults to name.
        cwd: Working directory override for the command.
        skip_reason: Set when the skip predicate fires.
    """

    name: str
    command: list[str]
    required: bool = True
    env: dict[str, str] = field(default_factory=dict)
    skip_when: SkipPredicate | None = None
    warn_on_skip: bool = True
    on_success: SuccessHook | None = None
    failure_hint: str | None = None
    banner: str | None = None
    cwd: Path | None = None
    skip_reason: str | None = None

    @property
    def title(self) -> str:
        return self.banner or self.name

    def evaluate_skip(self) -> str | None:
        """Evaluate the skip predicate and remember its reason."""
        if self.skip_when is not None:
            self.skip_reason = self.skip_when()
        return self.skip_reason
