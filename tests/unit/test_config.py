"""Tests for pipeline configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from verifyall.pipeline.config import (
    CONFIG_FILENAME,
    DEFAULT_FUZZ_INPUT,
    ConfigError,
    EnvConfig,
    PipelineConfig,
    create_default_config,
    load_pipeline_config,
    resolve_pipeline_config,
)

# --- PipelineConfig ---


def test_default_config_paths(tmp_path: Path) -> None:
    config = create_default_config(tmp_path)

    assert config.cargo == "cargo"
    assert config.marker_path == tmp_path / "target" / "meta-checked"
    assert config.meta_python_path == tmp_path / "lib" / "codegen" / "meta-python"
    assert config.doc_index_path == tmp_path / "target" / "doc" / "cranelift" / "index.html"
    assert config.fuzz_input_path == (
        tmp_path / "fuzz" / "corpus" / "fuzz_translate_module" / DEFAULT_FUZZ_INPUT
    )
    assert config.logs_path == tmp_path / "target" / "logs"


def test_from_dict_minimal(tmp_path: Path) -> None:
    config = PipelineConfig.from_dict(tmp_path, {})

    assert config.root == tmp_path
    assert config.gates == []
    assert config.env.backtrace is True
    assert config.env.no_bytecode is True


def test_from_dict_full(tmp_path: Path) -> None:
    data = {
        "cargo": "/usr/local/bin/cargo",
        "target_dir": "build",
        "meta_python_dir": "meta",
        "watch_pattern": "*.pyi",
        "doc_crate": "wasmtime",
        "fuzz": {"target": "fuzz_compile", "input": "abc"},
        "env": {"backtrace": False},
        "pipeline": {"gates": {"docs": "optional", "fuzz": "required"}},
    }

    config = PipelineConfig.from_dict(tmp_path, data)

    assert config.cargo == "/usr/local/bin/cargo"
    assert config.marker_path == tmp_path / "build" / "meta-checked"
    assert config.meta_python_path == tmp_path / "meta"
    assert config.watch_pattern == "*.pyi"
    assert config.doc_index_path == tmp_path / "build" / "doc" / "wasmtime" / "index.html"
    assert config.fuzz_input_path == tmp_path / "fuzz" / "corpus" / "fuzz_compile" / "abc"
    assert config.env.backtrace is False
    assert config.is_required("docs") is False
    assert config.is_required("fuzz", default=False) is True
    assert config.is_required("unit-tests") is True


def test_from_dict_rejects_unknown_gate_value(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="must be 'required' or 'optional'"):
        PipelineConfig.from_dict(tmp_path, {"pipeline": {"gates": {"docs": "maybe"}}})


# --- Loading ---


def test_load_pipeline_config(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        """
doc_crate: cranelift_codegen
pipeline:
  gates:
    docs: optional
"""
    )

    config = load_pipeline_config(tmp_path)

    assert config.doc_crate == "cranelift_codegen"
    assert config.is_required("docs") is False


def test_load_pipeline_config_not_found(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_pipeline_config(tmp_path)

    assert "File not found" in str(exc_info.value)


def test_load_pipeline_config_empty(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("")

    with pytest.raises(ConfigError, match="Empty file"):
        load_pipeline_config(tmp_path)


def test_load_pipeline_config_invalid_gate_wrapped(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("pipeline:\n  gates:\n    docs: sometimes\n")

    with pytest.raises(ConfigError) as exc_info:
        load_pipeline_config(tmp_path)

    assert exc_info.value.path == tmp_path / CONFIG_FILENAME
    assert "sometimes" in exc_info.value.reason


def test_load_pipeline_config_bad_yaml(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("cargo: [unclosed\n")

    with pytest.raises(ConfigError):
        load_pipeline_config(tmp_path)


def test_resolve_without_file_uses_defaults(tmp_path: Path) -> None:
    config = resolve_pipeline_config(tmp_path)

    assert config == create_default_config(tmp_path)


def test_resolve_with_broken_file_raises(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("pipeline:\n  gates:\n    docs: 3\n")

    with pytest.raises(ConfigError):
        resolve_pipeline_config(tmp_path)


# --- Environment toggles ---


def test_collaborator_env_default() -> None:
    assert EnvConfig().collaborator_env() == {"PYTHONDONTWRITEBYTECODE": "1"}


def test_collaborator_env_disabled() -> None:
    assert EnvConfig(no_bytecode=False).collaborator_env() == {}


def test_env_override_takes_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VERIFYALL_BACKTRACE", "0")
    monkeypatch.setenv("VERIFYALL_NO_BYTECODE", "no")

    env = EnvConfig(backtrace=True, no_bytecode=True)

    assert env.backtrace_enabled() is False
    assert env.collaborator_env() == {}


def test_env_override_can_enable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VERIFYALL_BACKTRACE", "yes")

    assert EnvConfig(backtrace=False).backtrace_enabled() is True


def test_env_override_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VERIFYALL_BACKTRACE", "full")

    with pytest.raises(ValueError, match="VERIFYALL_BACKTRACE"):
        EnvConfig().backtrace_enabled()


@pytest.mark.parametrize(
    ("backtrace", "expected"),
    [("no", False), ("off", False), ("'false'", False), ("0", False), ("yes", True), ("on", True)],
)
def test_env_flags_from_yaml_strings(tmp_path: Path, backtrace: str, expected: bool) -> None:
    """YAML 1.2 keeps yes/no/on/off as strings; they still read as booleans."""
    (tmp_path / CONFIG_FILENAME).write_text(
        f"env:\n  backtrace: {backtrace}\n  no_bytecode: 'false'\n"
    )

    config = load_pipeline_config(tmp_path)

    assert config.env.backtrace is expected
    assert config.env.no_bytecode is False


def test_env_flags_from_yaml_bools(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("env:\n  backtrace: false\n  no_bytecode: true\n")

    config = load_pipeline_config(tmp_path)

    assert config.env == EnvConfig(backtrace=False, no_bytecode=True)


def test_env_flag_garbage_in_yaml_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("env:\n  backtrace: sometimes\n")

    with pytest.raises(ConfigError, match="env.backtrace"):
        load_pipeline_config(tmp_path)
