"""Process boundary for collaborator tools.

Every external tool is invoked as a blocking subprocess. Success is exit
code zero; any other code is failure. Output of stage commands is passed
straight through to the operator's console, output of capability queries
is captured so probes can inspect it.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from verifyall.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

log = get_logger(__name__)

# Exit status reported when a command cannot be launched at all
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class QueryResult:
    """Captured result of a quiet capability query."""

    returncode: int
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Runner(Protocol):
    """Protocol for anything that can execute collaborator commands."""

    def run(
        self,
        command: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> int:
        """Run a command to completion with inherited stdio and return its exit code."""
        ...

    def query(self, command: Sequence[str]) -> QueryResult:
        """Run a command with captured output, for probing only."""
        ...


class CommandRunner:
    """Run collaborator commands as synchronous subprocesses.

    Attributes:
        cwd: Default working directory (the project root).
    """

    def __init__(self, cwd: Path | None = None, base_env: Mapping[str, str] | None = None) -> None:
        """Initialize the runner.

        Args:
            cwd: Default working directory for commands.
            base_env: Environment to extend with per-command overlays.
                Defaults to the current process environment at call time.
        """
        self.cwd = cwd
        self._base_env = dict(base_env) if base_env is not None else None

    def _environment(self, overlay: Mapping[str, str] | None) -> dict[str, str]:
        env = dict(self._base_env) if self._base_env is not None else dict(os.environ)
        if overlay:
            env.update(overlay)
        return env

    def run(
        self,
        command: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> int:
        argv = list(command)
        workdir = cwd or self.cwd
        log.debug(
            "command_start",
            command=shlex.join(argv),
            cwd=str(workdir) if workdir else None,
            env_overlay=dict(env) if env else {},
        )
        try:
            proc = subprocess.run(
                argv,
                cwd=workdir,
                env=self._environment(env),
                check=False,
            )
        except OSError as e:
            log.error("command_launch_failed", command=shlex.join(argv), error=str(e))
            return EXIT_NOT_FOUND

        log.debug("command_exit", command=shlex.join(argv), returncode=proc.returncode)
        return proc.returncode

    def query(self, command: Sequence[str]) -> QueryResult:
        argv = list(command)
        try:
            proc = subprocess.run(
                argv,
                cwd=self.cwd,
                env=self._environment(None),
                text=True,
                capture_output=True,
                check=False,
            )
        except OSError as e:
            log.debug("query_launch_failed", command=shlex.join(argv), error=str(e))
            return QueryResult(returncode=EXIT_NOT_FOUND)

        return QueryResult(returncode=proc.returncode, stdout=proc.stdout or "")
