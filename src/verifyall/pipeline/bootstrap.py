"""Install-on-demand for optional tools used by best-effort stages."""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from verifyall.observability.logging import get_logger
from verifyall.pipeline.probe import CapabilityResult

if TYPE_CHECKING:
    from rich.console import Console

    from verifyall.pipeline.probe import CapabilityProbe
    from verifyall.pipeline.runner import Runner

log = get_logger(__name__)


def ensure_installed(
    tool_id: str,
    prober: CapabilityProbe,
    runner: Runner,
    console: Console | None = None,
) -> CapabilityResult:
    """Make sure a tool is available, installing it if needed.

    Probes the tool; if absent, runs its registered install command and
    probes again. A failed install is reported as an unavailable tool so the
    dependent stage is skipped rather than failed.

    Args:
        tool_id: Registered tool identifier.
        prober: Capability probe used before and after installing.
        runner: Runner used for the install command.
        console: Optional console for operator messages.

    Returns:
        CapabilityResult after the (optional) install attempt.
    """
    result = prober.probe(tool_id)
    if result.available:
        if console is not None:
            console.print(f"{tool_id} found", highlight=False)
        log.debug("tool_present", tool=tool_id)
        return result

    install = prober.install_command(tool_id)
    if install is None:
        return CapabilityResult(
            tool_id=tool_id,
            available=False,
            detail=f"{result.detail}; no install command known",
        )

    if console is not None:
        console.print(f"installing {tool_id}", highlight=False)
    log.info("tool_install_start", tool=tool_id, command=shlex.join(install))

    exit_code = runner.run(install)
    if exit_code != 0:
        log.warning("tool_install_failed", tool=tool_id, returncode=exit_code)
        return CapabilityResult(
            tool_id=tool_id,
            available=False,
            detail=f"`{shlex.join(install)}` exited with status {exit_code}",
        )

    after = prober.probe(tool_id)
    if not after.available:
        log.warning("tool_missing_after_install", tool=tool_id, detail=after.detail)
        return CapabilityResult(
            tool_id=tool_id,
            available=False,
            detail=f"still unavailable after install: {after.detail}",
        )
    log.info("tool_installed", tool=tool_id)
    return after
