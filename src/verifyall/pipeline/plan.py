"""The fixed verification stage plan.

Order matters: cheap checks run before expensive builds, builds before
tests, and the best-effort fuzz smoke test runs last.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from verifyall.observability.logging import get_logger
from verifyall.pipeline.bootstrap import ensure_installed
from verifyall.pipeline.probe import (
    CARGO_FUZZ,
    NIGHTLY_TOOLCHAIN,
    RUSTFMT,
    CapabilityProbe,
    default_tool_queries,
)
from verifyall.pipeline.stages import Stage
from verifyall.pipeline.staleness import FileMarkerStore, StalenessGate, StalenessMarker

if TYPE_CHECKING:
    from rich.console import Console

    from verifyall.pipeline.config import PipelineConfig
    from verifyall.pipeline.runner import Runner

log = get_logger(__name__)

STAGE_FORMAT = "format"
STAGE_PYTHON_CHECK = "python-check"
STAGE_RELEASE_BUILD = "release-build"
STAGE_DEBUG_BUILD = "debug-build"
STAGE_UNIT_TESTS = "unit-tests"
STAGE_DOCS = "docs"
STAGE_FUZZ = "fuzz"

STAGE_ORDER = [
    STAGE_FORMAT,
    STAGE_PYTHON_CHECK,
    STAGE_RELEASE_BUILD,
    STAGE_DEBUG_BUILD,
    STAGE_UNIT_TESTS,
    STAGE_DOCS,
    STAGE_FUZZ,
]

FORMAT_FAILURE_HINT = 'Formatting diffs detected! Run "cargo fmt --all" to correct.'
FORMATTER_MISSING_MESSAGE = (
    "cargo-fmt not available; formatting not checked!\n\n"
    "If you are using rustup, rustfmt can be installed via\n"
    '"rustup component add --toolchain=stable rustfmt-preview", or see\n'
    "https://github.com/rust-lang-nursery/rustfmt for more information."
)
NIGHTLY_MISSING_MESSAGE = "nightly toolchain not found, skipping fuzz target integration test"


def create_staleness_gate(config: PipelineConfig) -> StalenessGate:
    """Staleness gate watching the meta code generator's Python sources."""
    marker = StalenessMarker(
        store=FileMarkerStore(config.marker_path),
        watched_root=config.meta_python_path,
        pattern=config.watch_pattern,
    )
    return StalenessGate(marker)


def create_prober(config: PipelineConfig, runner: Runner) -> CapabilityProbe:
    return CapabilityProbe(runner, default_tool_queries(cargo=config.cargo, rustup=config.rustup))


def build_stages(
    config: PipelineConfig,
    runner: Runner,
    *,
    prober: CapabilityProbe | None = None,
    gate: StalenessGate | None = None,
    console: Console | None = None,
    bootstrap: bool = True,
) -> list[Stage]:
    """Build the ordered stage list for a full verification run.

    Args:
        config: Pipeline configuration.
        runner: Runner used by the fuzz bootstrap step.
        prober: Capability probe; defaults to probing the configured toolchain.
        gate: Staleness gate for the Python check; defaults to the marker
            under the build output directory.
        console: Console for bootstrap messages.
        bootstrap: If False, the fuzz stage reports a missing cargo-fuzz as
            a skip instead of installing it. Used to preview a run.

    Returns:
        Stages in execution order, with gate overrides applied.
    """
    prober = prober or create_prober(config, runner)
    gate = gate or create_staleness_gate(config)
    cargo = config.cargo
    base_env = config.env.collaborator_env()

    def _formatter_missing() -> str | None:
        if prober.probe(RUSTFMT).available:
            return None
        return FORMATTER_MISSING_MESSAGE

    def _python_unchanged() -> str | None:
        if gate.should_run():
            return None
        return f"no Python files under {config.meta_python_path} changed since the last check"

    def _commit_marker() -> None:
        try:
            gate.commit()
        except OSError as e:
            log.warning(
                "marker_commit_failed",
                reason="no target directory",
                path=str(config.marker_path),
                error=str(e),
            )

    def _fuzz_unavailable() -> str | None:
        if not prober.probe(NIGHTLY_TOOLCHAIN).available:
            return NIGHTLY_MISSING_MESSAGE
        if not bootstrap:
            fuzz = prober.probe(CARGO_FUZZ)
            if not fuzz.available:
                return f"cargo-fuzz not installed ({fuzz.detail}), a run installs it first"
            return None
        fuzz = ensure_installed(CARGO_FUZZ, prober, runner, console=console)
        if not fuzz.available:
            return f"cargo-fuzz unavailable ({fuzz.detail}), skipping fuzz target integration test"
        return None

    test_env = dict(base_env)
    if config.env.backtrace_enabled():
        test_env["RUST_BACKTRACE"] = "1"

    fuzz_env = {**base_env, "ASAN_OPTIONS": "detect_leaks=0"}

    stages = [
        Stage(
            name=STAGE_FORMAT,
            banner="Rust formatting",
            command=[str(config.root / "format-all.sh"), "--check"],
            env=dict(base_env),
            skip_when=_formatter_missing,
            failure_hint=FORMAT_FAILURE_HINT,
        ),
        Stage(
            name=STAGE_PYTHON_CHECK,
            banner="Checking python source files",
            command=[str(config.meta_python_path / "check.sh")],
            env=dict(base_env),
            skip_when=_python_unchanged,
            warn_on_skip=False,
            on_success=_commit_marker,
        ),
        Stage(
            name=STAGE_RELEASE_BUILD,
            banner="Rust release build",
            command=[cargo, "build", "--release"],
            env=dict(base_env),
        ),
        Stage(
            name=STAGE_DEBUG_BUILD,
            banner="Rust debug build",
            command=[cargo, "build"],
            env=dict(base_env),
        ),
        Stage(
            name=STAGE_UNIT_TESTS,
            banner="Rust unit tests",
            command=[cargo, "test", "--all"],
            env=test_env,
        ),
        Stage(
            name=STAGE_DOCS,
            banner=f"Rust documentation: {config.doc_index_path}",
            command=[cargo, "doc"],
            env=dict(base_env),
        ),
        Stage(
            name=STAGE_FUZZ,
            banner="cargo fuzz check",
            command=[
                cargo,
                "+nightly",
                "fuzz",
                "run",
                config.fuzz.target,
                str(config.fuzz_input_path),
            ],
            env=fuzz_env,
            skip_when=_fuzz_unavailable,
        ),
    ]

    for stage in stages:
        stage.required = config.is_required(stage.name, default=stage.required)

    unknown = [g.stage for g in config.gates if g.stage not in STAGE_ORDER]
    if unknown:
        log.warning("unknown_gate_stages", stages=unknown, valid=STAGE_ORDER)
    return stages
