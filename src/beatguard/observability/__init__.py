"""Observability module for beatguard.

Provides structured logging.
"""

from beatguard.observability.logging import (
    bind_locator,
    close_log_file,
    configure_logging,
    get_logger,
    log_file_for,
)

__all__ = [
    "bind_locator",
    "close_log_file",
    "configure_logging",
    "get_logger",
    "log_file_for",
]
