"""Logging setup and the directory audit trail."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from ..config.models import LoggingConfig

ROOT_LOGGER = "active_directory_runbooks"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5
QUIET_LOGGERS = ("ldap3", "urllib3", "winrm")


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """
    Configure the package logger from the ``logging`` config section.

    Records go to stderr, and to a rotating file when one is configured.
    stdout carries only the JSON result or the MCP stdio stream.
    """
    level = getattr(logging, config.level)
    formatter = logging.Formatter(config.format)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    handlers = [logging.StreamHandler(sys.stderr)]
    if config.file:
        log_file = Path(config.file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding='utf-8'))
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging at {config.level}" + (f" to {config.file}" if config.file else ""))
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_directory_operation(operation: str, target: str, success: bool, details: Optional[str] = None) -> None:
    """Write one ``DIRECTORY <OP> SUCCESS|FAILED: <target>`` audit line."""
    status = "SUCCESS" if success else "FAILED"
    message = f"DIRECTORY {operation.upper()} {status}: {target}"
    if details:
        message += f" - {details}"

    get_logger("audit").log(logging.INFO if success else logging.WARNING, message)
