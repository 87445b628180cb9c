"""Capability probes for optional external tools.

A probe answers "is this tool usable here?" by running a lightweight query
command and inspecting its exit status and output. Absence of a tool is a
normal outcome, never an error.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING

from verifyall.errors import UnknownToolError
from verifyall.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from verifyall.pipeline.runner import Runner

log = get_logger(__name__)

RUSTFMT = "rustfmt"
NIGHTLY_TOOLCHAIN = "nightly-toolchain"
CARGO_FUZZ = "cargo-fuzz"


@dataclass(frozen=True)
class CapabilityResult:
    """Availability of one tool at the moment it was probed."""

    tool_id: str
    available: bool
    detail: str = ""


@dataclass(frozen=True)
class ToolQuery:
    """How to detect (and optionally install) a tool.

    Attributes:
        command: Query command; a zero exit status is required.
        expect: Substring that must appear in the query's stdout, if set.
        install: Command that installs the tool, if it can be bootstrapped.
    """

    command: tuple[str, ...]
    expect: str | None = None
    install: tuple[str, ...] | None = None


def default_tool_queries(cargo: str = "cargo", rustup: str = "rustup") -> dict[str, ToolQuery]:
    """Build the queries for the tools the verification pipeline cares about."""
    return {
        RUSTFMT: ToolQuery(command=(cargo, "+stable", "fmt", "--", "--version")),
        NIGHTLY_TOOLCHAIN: ToolQuery(command=(rustup, "toolchain", "list"), expect="nightly"),
        CARGO_FUZZ: ToolQuery(
            command=(cargo, "install", "--list"),
            expect="cargo-fuzz",
            install=(cargo, "+nightly", "install", "cargo-fuzz"),
        ),
    }


class CapabilityProbe:
    """Detect tool availability through a runner's query channel.

    Results are not cached: every call re-queries the environment, so a
    tool installed mid-run is seen by the next probe.
    """

    def __init__(self, runner: Runner, queries: Mapping[str, ToolQuery]) -> None:
        self._runner = runner
        self._queries = dict(queries)

    @property
    def tool_ids(self) -> list[str]:
        return list(self._queries)

    def _query_for(self, tool_id: str) -> ToolQuery:
        query = self._queries.get(tool_id)
        if query is None:
            raise UnknownToolError(tool_id)
        return query

    def install_command(self, tool_id: str) -> tuple[str, ...] | None:
        """Return the install command registered for a tool, if any."""
        return self._query_for(tool_id).install

    def probe(self, tool_id: str) -> CapabilityResult:
        """Probe a tool.

        Args:
            tool_id: Registered tool identifier.

        Returns:
            CapabilityResult describing availability.

        Raises:
            UnknownToolError: If no query is registered for tool_id.
        """
        query = self._query_for(tool_id)
        shown = shlex.join(query.command)
        result = self._runner.query(query.command)

        if not result.ok:
            detail = f"`{shown}` exited with status {result.returncode}"
            available = False
        elif query.expect is not None and query.expect not in result.stdout:
            detail = f"'{query.expect}' not listed by `{shown}`"
            available = False
        else:
            detail = f"`{shown}` succeeded"
            available = True

        log.debug("capability_probed", tool=tool_id, available=available, detail=detail)
        return CapabilityResult(tool_id=tool_id, available=available, detail=detail)
