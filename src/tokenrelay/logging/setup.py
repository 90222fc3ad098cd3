"""Logging setup and configuration."""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from tokenrelay.logging.context import set_log_context
from tokenrelay.logging.formatters import ConsoleFormatter, JSONFormatter

# Default settings
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_ROTATION_INTERVAL = 1
DEFAULT_BACKUP_COUNT = 7
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "aiohttp.access",
    "aiohttp.client",
    "asyncio",
    "urllib3",
]


def get_log_file_path(log_dir: Path, name: str) -> Path:
    """
    Build the log file path for a logger name.

    Args:
        log_dir: Base log directory
        name: Logger name, used as the file prefix

    Returns:
        Path like ``logs/tokenrelay.log``
    """
    safe_name = name.replace("/", "_").replace("\\", "_") or "tokenrelay"
    return log_dir / f"{safe_name}.log"


def setup_logging(
    name: str = "tokenrelay",
    component: str | None = None,
    log_dir: Path | None = None,
    json_format: bool = True,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    file_level: int = DEFAULT_FILE_LEVEL,
    rotation_when: str = DEFAULT_ROTATION_WHEN,
    rotation_interval: int = DEFAULT_ROTATION_INTERVAL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    log_to_stdout: bool = False,
) -> logging.Logger:
    """
    Configure logging with a console handler and a time-based rotating file handler.

    Args:
        name: Logger name and log file prefix
        component: Component name added to every log line's context
        log_dir: Directory for log files (default: ./logs)
        json_format: Use JSON format for file logs (default: True)
        console_level: Console handler level (default: INFO)
        file_level: File handler level (default: DEBUG)
        rotation_when: When to rotate logs - 'midnight', 'H' (hourly), 'M' (minutes)
        rotation_interval: Interval for rotation (default: 1)
        backup_count: Number of backup files to keep (default: 7)
        suppress_noisy: Quiet down HTTP client loggers
        log_to_stdout: Send all log output to stdout only, skipping the file handler.
            Useful for containerized deployments where logs are captured from stdout.

    Returns:
        Configured logger instance
    """
    log_dir = log_dir or DEFAULT_LOG_DIR

    if component:
        set_log_context(component=component)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    if log_to_stdout:
        console_handler.setLevel(file_level)
        root_logger.addHandler(console_handler)
    else:
        console_handler.setLevel(console_level)
        root_logger.addHandler(console_handler)

        log_file = get_log_file_path(log_dir, name)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_formatter = JSONFormatter()
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )

        file_handler = TimedRotatingFileHandler(
            log_file,
            when=rotation_when,
            interval=rotation_interval,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(
        "Logging initialized",
        extra={"component": component} if component else None,
    )
    return logger

