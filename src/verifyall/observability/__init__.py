"""Observability module for verifyall.

Provides structured logging for the pipeline and its CLI.
"""

from verifyall.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    stage_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "stage_context",
]
