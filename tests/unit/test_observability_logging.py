"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from verifyall.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    stage_context,
)
from verifyall.observability.logging import DEBUG_LOG_FILENAME, render_console_line

if TYPE_CHECKING:
    from pathlib import Path


def _read_events(logs_dir: Path) -> list[dict[str, object]]:
    close_file_logging()
    lines = (logs_dir / DEBUG_LOG_FILENAME).read_text().splitlines()
    return [json.loads(line) for line in lines]


def test_configure_logging_sets_level_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_verbose_sets_debug_root() -> None:
    """verbosity=1 opens the root logger; the console handler filters to INFO."""
    configure_logging(verbosity=1)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert root_logger.handlers[0].level == logging.INFO


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    import verifyall.observability.logging as log_module

    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert hasattr(logger, "warning")


def test_configure_logging_requires_logs_dir_for_file_logging() -> None:
    with pytest.raises(ValueError, match="logs_dir is required"):
        configure_logging(verbosity=0, log_to_file=True, logs_dir=None)


def test_configure_logging_without_file_logging(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=False, logs_dir=tmp_path / "logs")

    assert not (tmp_path / "logs").exists()


def test_file_logging_writes_jsonl(tmp_path: Path) -> None:
    """Structured events land in debug.jsonl with their fields."""
    logs_dir = tmp_path / "logs"
    configure_logging(verbosity=0, log_to_file=True, logs_dir=logs_dir)

    get_logger("verifyall.test").warning("tool_install_failed", tool="cargo-fuzz", returncode=101)

    entry = next(e for e in _read_events(logs_dir) if e["event"] == "tool_install_failed")
    assert entry["level"] == "warning"
    assert entry["logger"] == "verifyall.test"
    assert entry["tool"] == "cargo-fuzz"
    assert entry["returncode"] == 101
    assert "timestamp" in entry


def test_file_logging_keeps_debug_at_default_verbosity(tmp_path: Path) -> None:
    """The console stays at WARNING while the file records everything."""
    configure_logging(verbosity=0, log_to_file=True, logs_dir=tmp_path)

    get_logger("verifyall.test").debug("command_start", command="cargo build")

    assert any(e["event"] == "command_start" for e in _read_events(tmp_path))


def test_stage_context_binds_stage_name(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=True, logs_dir=tmp_path)
    log = get_logger("verifyall.test")

    with stage_context("fuzz"):
        log.info("tool_install_start", tool="cargo-fuzz")
    log.info("pipeline_passed")

    events = {e["event"]: e for e in _read_events(tmp_path)}
    assert events["tool_install_start"]["stage"] == "fuzz"
    assert "stage" not in events["pipeline_passed"]


def test_configure_logging_reconfiguration_closes_handler(tmp_path: Path) -> None:
    import verifyall.observability.logging as log_module

    configure_logging(verbosity=0, log_to_file=True, logs_dir=tmp_path)
    first_handler = log_module._file_handler
    assert first_handler is not None

    configure_logging(verbosity=0, log_to_file=True, logs_dir=tmp_path)

    assert first_handler.stream is None
    assert log_module._file_handler is not first_handler
    close_file_logging()


def test_console_line_prefixes_stage_and_hides_metadata() -> None:
    line = render_console_line(
        None,
        "warning",
        {
            "event": "stage_skipped",
            "stage": "fuzz",
            "reason": "no nightly",
            "level": "warning",
            "timestamp": "2026-01-01T00:00:00Z",
        },
    )

    assert line == "[fuzz] stage_skipped reason=no nightly"


def test_console_line_without_stage() -> None:
    line = render_console_line(None, "info", {"event": "pipeline_passed", "warnings": 0})

    assert line == "pipeline_passed warnings=0"
