"""Pipeline orchestration and stage execution."""

from verifyall.pipeline.bootstrap import ensure_installed
from verifyall.pipeline.config import (
    ConfigError,
    EnvConfig,
    FuzzConfig,
    GateConfig,
    PipelineConfig,
    create_default_config,
    load_pipeline_config,
    resolve_pipeline_config,
)
from verifyall.pipeline.driver import PipelineDriver, PipelineOutcome, PipelineStatus
from verifyall.pipeline.plan import STAGE_ORDER, build_stages
from verifyall.pipeline.probe import CapabilityProbe, CapabilityResult, ToolQuery
from verifyall.pipeline.runner import CommandRunner, QueryResult, Runner
from verifyall.pipeline.stages import Stage
from verifyall.pipeline.staleness import (
    FileMarkerStore,
    MarkerStore,
    StalenessGate,
    StalenessMarker,
)

__all__ = [
    "STAGE_ORDER",
    "CapabilityProbe",
    "CapabilityResult",
    "CommandRunner",
    "ConfigError",
    "EnvConfig",
    "FileMarkerStore",
    "FuzzConfig",
    "GateConfig",
    "MarkerStore",
    "PipelineConfig",
    "PipelineDriver",
    "PipelineOutcome",
    "PipelineStatus",
    "QueryResult",
    "Runner",
    "Stage",
    "StalenessGate",
    "StalenessMarker",
    "ToolQuery",
    "build_stages",
    "create_default_config",
    "ensure_installed",
    "load_pipeline_config",
    "resolve_pipeline_config",
]
