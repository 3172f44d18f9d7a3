"""Observability module for Image Promoter.

Provides structured logging with per-run context.
"""

from promoter.observability.logging import (
    bind_run_context,
    clear_run_context,
    close_file_logging,
    configure_logging,
    generate_run_id,
    get_logger,
)

__all__ = [
    "bind_run_context",
    "clear_run_context",
    "close_file_logging",
    "configure_logging",
    "generate_run_id",
    "get_logger",
]
