"""Logging setup and configuration."""

import logging
import os
import secrets
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_CONSOLE_LEVEL = logging.WARNING
DEFAULT_FILE_LEVEL = logging.DEBUG

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "aiohttp.access",
    "aiohttp.client",
    "asyncio",
    "urllib3",
]


def _env_json_format() -> bool:
    return os.getenv("LOG_FORMAT", "").lower() == "json"


def setup_logging(
    name: str = "cencli",
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    json_format: bool | None = None,
    log_file: Path | None = None,
    file_level: int = DEFAULT_FILE_LEVEL,
    stream: TextIO | None = None,
    suppress_noisy: bool = True,
    command: str | None = None,
    operation_id: str | None = None,
) -> logging.Logger:
    """
    Configure root logging for a CLI invocation.

    Diagnostics go to stderr so stdout stays reserved for command output.
    A log file, when given, always receives JSON lines at file_level.

    Args:
        name: Logger name to return
        console_level: Level for the stderr handler (default: WARNING)
        json_format: JSON lines on stderr; None reads LOG_FORMAT=json
        log_file: Optional path of an additional JSON log file
        file_level: Level for the file handler (default: DEBUG)
        stream: Override for the console stream (default: sys.stderr)
        suppress_noisy: Quiet down HTTP client and asyncio loggers
        command: Command name injected into every record
        operation_id: Correlation id injected into every record

    Returns:
        Configured logger instance
    """
    if command:
        set_log_context(command=command)
    if operation_id:
        set_log_context(operation_id=operation_id)

    if json_format is None:
        json_format = _env_json_format()

    stream = stream if stream is not None else sys.stderr
    console_handler = logging.StreamHandler(stream)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter(stream=stream))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(
        "Logging initialized: file=%s, json=%s",
        log_file,
        json_format,
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Use this instead of logging.getLogger() to ensure consistent naming.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def generate_operation_id() -> str:
    """
    Generate unique operation identifier.

    Format: op-YYYYMMDD-HHMMSS-XXXX where XXXX is random hex.
    """
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    suffix = secrets.token_hex(2)
    return f"op-{ts}-{suffix}"
