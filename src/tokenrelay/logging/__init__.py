"""
Structured logging module.

Provides JSON logging with context propagation (client id, strategy, trace id).
"""

from tokenrelay.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from tokenrelay.logging.context_managers import LogContext
from tokenrelay.logging.formatters import ConsoleFormatter, JSONFormatter
from tokenrelay.logging.setup import (
    get_log_file_path,
    setup_logging,
)
from tokenrelay.logging.utilities import log_exception, log_with_context

__all__ = [
    # Setup
    "setup_logging",
    "get_log_file_path",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "LogContext",
    # Utilities
    "log_with_context",
    "log_exception",
]
