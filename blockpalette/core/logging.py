"""Structured logging for blockpalette.

All modules log under the "blockpalette" root with structured context:

    logger.warning("Catalog source failed", extra={"context": {"source": "toolbox"}})

Handlers are driven by PaletteConfig:
    - Console: human-readable, INFO (DEBUG when config.debug is set)
    - File: JSON lines in a rotating file, only when config.log_path is set

create_engine() calls setup_logging() with the session config; the
engine itself never touches the filesystem otherwise.

Usage:
    from blockpalette.core.logging import get_logger

    logger = get_logger(__name__)
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from blockpalette.core.config import PaletteConfig

ROOT_LOGGER_NAME = "blockpalette"
LOG_FILE_NAME = "blockpalette.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context is not None:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short human-readable line with context appended as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%H:%M:%S")
        message = record.getMessage()

        context = getattr(record, "context", None)
        if context:
            pairs = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"{message} [{pairs}]"

        return f"{timestamp} {record.levelname[:4]:4s} {record.name}: {message}"


# Handlers installed by setup_logging, removed again by reset_logging
_handlers: list[logging.Handler] = []


def _console_handler(config: PaletteConfig) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG if config.debug else logging.INFO)
    handler.setFormatter(ConsoleFormatter())
    return handler


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(config: Optional[PaletteConfig] = None) -> None:
    """Install the blockpalette handlers once per process.

    Args:
        config: Session configuration; defaults to PaletteConfig()
    """
    if _handlers:
        return

    config = config or PaletteConfig()
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    _handlers.append(_console_handler(config))
    if config.log_path is not None:
        try:
            _handlers.append(_file_handler(config.log_path))
        except OSError as e:
            root_logger.warning(
                "File logging disabled",
                extra={"context": {"log_path": str(config.log_path), "error": str(e)}},
            )

    for handler in _handlers:
        root_logger.addHandler(handler)

    root_logger.debug(
        "Logging initialized",
        extra={"context": {"debug": config.debug, "log_path": str(config.log_path)}},
    )


def reset_logging() -> None:
    """Remove and close the handlers installed by setup_logging.

    Used primarily for testing.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    while _handlers:
        handler = _handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, always under the blockpalette root.

    Args:
        name: Module name (typically __name__)
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
