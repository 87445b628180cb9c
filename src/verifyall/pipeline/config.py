"""Pipeline configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from verifyall.errors import VerifyError

CONFIG_FILENAME = "verifyall.yaml"

# Default configuration values
DEFAULT_CARGO = "cargo"
DEFAULT_RUSTUP = "rustup"
DEFAULT_TARGET_DIR = "target"
DEFAULT_META_PYTHON_DIR = "lib/codegen/meta-python"
DEFAULT_WATCH_PATTERN = "*.py"
DEFAULT_DOC_CRATE = "cranelift"
DEFAULT_FUZZ_TARGET = "fuzz_translate_module"
DEFAULT_FUZZ_INPUT = "ffaefab69523eb11935a9b420d58826c8ea65c4c"

MARKER_FILENAME = "meta-checked"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}
_GATE_VALUES = {"required", "optional"}


def _parse_flag(name: str, raw: object) -> bool:
    """Interpret a boolean toggle given as a YAML bool, an int or a string.

    YAML 1.2 reads unquoted ``no`` and ``off`` as strings, so strings are
    matched against the same word lists as environment variables.
    """
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean toggle from the environment, falling back to default."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return _parse_flag(name, raw)


@dataclass
class EnvConfig:
    """Environment toggles passed through to collaborator tools.

    Neither toggle is interpreted by the pipeline itself.

    Resolution order for each toggle:
    1. Environment variable (VERIFYALL_BACKTRACE, VERIFYALL_NO_BYTECODE)
    2. Config file (env.backtrace, env.no_bytecode)
    3. Default (both enabled)

    Attributes:
        backtrace: Export RUST_BACKTRACE=1 to the unit test run.
        no_bytecode: Export PYTHONDONTWRITEBYTECODE=1 to every collaborator.
    """

    backtrace: bool = True
    no_bytecode: bool = True

    def backtrace_enabled(self) -> bool:
        return _env_flag("VERIFYALL_BACKTRACE", self.backtrace)

    def no_bytecode_enabled(self) -> bool:
        return _env_flag("VERIFYALL_NO_BYTECODE", self.no_bytecode)

    def collaborator_env(self) -> dict[str, str]:
        """Environment overlay applied to every stage command."""
        if self.no_bytecode_enabled():
            return {"PYTHONDONTWRITEBYTECODE": "1"}
        return {}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnvConfig:
        return cls(
            backtrace=_parse_flag("env.backtrace", data.get("backtrace", True)),
            no_bytecode=_parse_flag("env.no_bytecode", data.get("no_bytecode", True)),
        )


@dataclass
class FuzzConfig:
    """Fuzz smoke test target and the single corpus input it is run on."""

    target: str = DEFAULT_FUZZ_TARGET
    input: str = DEFAULT_FUZZ_INPUT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FuzzConfig:
        return cls(
            target=str(data.get("target", DEFAULT_FUZZ_TARGET)),
            input=str(data.get("input", DEFAULT_FUZZ_INPUT)),
        )


@dataclass
class GateConfig:
    """Requiredness override for a single stage."""

    stage: str
    required: bool = True


@dataclass
class PipelineConfig:
    """Configuration for a verification run.

    All relative directories are resolved against ``root``.
    """

    root: Path
    cargo: str = DEFAULT_CARGO
    rustup: str = DEFAULT_RUSTUP
    target_dir: str = DEFAULT_TARGET_DIR
    meta_python_dir: str = DEFAULT_META_PYTHON_DIR
    watch_pattern: str = DEFAULT_WATCH_PATTERN
    doc_crate: str = DEFAULT_DOC_CRATE
    fuzz: FuzzConfig = field(default_factory=FuzzConfig)
    env: EnvConfig = field(default_factory=EnvConfig)
    gates: list[GateConfig] = field(default_factory=list)

    @property
    def target_path(self) -> Path:
        return self.root / self.target_dir

    @property
    def meta_python_path(self) -> Path:
        return self.root / self.meta_python_dir

    @property
    def marker_path(self) -> Path:
        return self.target_path / MARKER_FILENAME

    @property
    def logs_path(self) -> Path:
        return self.target_path / "logs"

    @property
    def doc_index_path(self) -> Path:
        return self.target_path / "doc" / self.doc_crate / "index.html"

    @property
    def fuzz_input_path(self) -> Path:
        return self.root / "fuzz" / "corpus" / self.fuzz.target / self.fuzz.input

    def is_required(self, stage: str, default: bool = True) -> bool:
        """Effective requiredness of a stage after gate overrides."""
        for gate in self.gates:
            if gate.stage == stage:
                return gate.required
        return default

    @classmethod
    def from_dict(cls, root: Path, data: dict[str, Any]) -> PipelineConfig:
        """Create config from dictionary.

        Args:
            root: Project root directory.
            data: Dictionary containing config fields.

        Returns:
            PipelineConfig instance.

        Raises:
            ValueError: If a gate value is neither "required" nor "optional".
        """
        pipeline_data = data.get("pipeline") or {}
        gates_data = pipeline_data.get("gates") or {}
        gates: list[GateConfig] = []
        for stage, value in gates_data.items():
            if value not in _GATE_VALUES:
                raise ValueError(
                    f"gate for stage '{stage}' must be 'required' or 'optional', got {value!r}"
                )
            gates.append(GateConfig(stage=str(stage), required=(value == "required")))

        return cls(
            root=root,
            cargo=str(data.get("cargo", DEFAULT_CARGO)),
            rustup=str(data.get("rustup", DEFAULT_RUSTUP)),
            target_dir=str(data.get("target_dir", DEFAULT_TARGET_DIR)),
            meta_python_dir=str(data.get("meta_python_dir", DEFAULT_META_PYTHON_DIR)),
            watch_pattern=str(data.get("watch_pattern", DEFAULT_WATCH_PATTERN)),
            doc_crate=str(data.get("doc_crate", DEFAULT_DOC_CRATE)),
            fuzz=FuzzConfig.from_dict(dict(data.get("fuzz") or {})),
            env=EnvConfig.from_dict(dict(data.get("env") or {})),
            gates=gates,
        )


class ConfigError(VerifyError):
    """Raised when pipeline configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load pipeline config at {path}: {reason}")


def load_pipeline_config(root: Path) -> PipelineConfig:
    """Load pipeline configuration from verifyall.yaml.

    Args:
        root: Project root directory.

    Returns:
        PipelineConfig instance.

    Raises:
        ConfigError: If config cannot be loaded.
    """
    config_path = root / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(config_path, "File not found")

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ConfigError(config_path, "Empty file")

        return PipelineConfig.from_dict(root, dict(data))
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_path, str(e)) from e


def create_default_config(root: Path) -> PipelineConfig:
    """Create a configuration with all defaults for the given root."""
    return PipelineConfig(root=root)


def resolve_pipeline_config(root: Path) -> PipelineConfig:
    """Load verifyall.yaml if present, otherwise use defaults.

    A missing file is the normal case. A file that exists but cannot be
    parsed still raises ConfigError.
    """
    if not (root / CONFIG_FILENAME).exists():
        return create_default_config(root)
    return load_pipeline_config(root)
