"""Structured logging for verifyall.

Stage output belongs to the collaborator tools and goes straight to the
terminal. This module only handles the driver's own events:

- Console: stderr through rich, level chosen by ``-v``. Events render as
  ``[stage] event key=value ...``.
- File: ``--log`` appends every event, one JSON object per line, to
  ``<target>/logs/debug.jsonl``.

Events logged while a stage is active carry its name through
:func:`stage_context`, including those from the runner, the capability
probes and the bootstrap step.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from structlog.typing import EventDict, Processor, WrappedLogger

DEBUG_LOG_FILENAME = "debug.jsonl"

_configured = False
_file_handler: logging.FileHandler | None = None

# Shown by RichHandler itself or placed in front of the line
_CONSOLE_HIDDEN_KEYS = frozenset({"event", "level", "timestamp", "logger", "stage"})


def render_console_line(_logger: WrappedLogger, _name: str, event_dict: EventDict) -> str:
    """Render an event as ``[stage] event key=value ...``."""
    stage = event_dict.get("stage")
    parts = [f"[{stage}]"] if stage else []
    parts.append(str(event_dict.get("event", "")))
    for key, value in event_dict.items():
        if key not in _CONSOLE_HIDDEN_KEYS:
            parts.append(f"{key}={value}")
    return " ".join(parts)


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _console_handler(verbosity: int) -> logging.Handler:
    levels = {0: logging.WARNING, 1: logging.INFO}
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=levels.get(verbosity, logging.DEBUG),
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                render_console_line,
            ],
        )
    )
    return handler


def _jsonl_handler(logs_dir: Path) -> logging.FileHandler:
    logs_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(logs_dir / DEBUG_LOG_FILENAME, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    return handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    logs_dir: Path | None = None,
) -> None:
    """Configure logging for verifyall.

    Safe to call more than once: the CLI configures the console first and
    adds the file handler once the config has named the target directory.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
        log_to_file: If True, append JSON lines to logs_dir/debug.jsonl.
        logs_dir: Directory for file logging. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but logs_dir is not provided.
    """
    global _configured, _file_handler

    if log_to_file and logs_dir is None:
        raise ValueError("logs_dir is required when log_to_file=True")

    close_file_logging()

    handlers = [_console_handler(verbosity)]
    if log_to_file and logs_dir is not None:
        _file_handler = _jsonl_handler(logs_dir)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger, configuring console logging on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """Attach ``stage`` to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(stage=stage):
        yield


def close_file_logging() -> None:
    """Close the JSONL file handler, if one is open."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
