#!/usr/bin/env python3
"""
Logging setup for the settlement library

Library modules only call ``logging.getLogger(__name__)``; handlers live on
the ``settlement`` logger, so configuring it once routes verifier, parser
and relay output through the same formatter.

Modes:
- production: one JSON object per line (log shippers)
- development: colored single-line output for the terminal
"""

import json
import logging
import logging.handlers
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "settlement"

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON document per record, for production"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        # txid, listing_id, network ... from LogContext
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Colored terminal output for development"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        line = (
            f"{color}{self.formatTime(record, '%H:%M:%S')} "
            f"{record.levelname:<8}{self.RESET} "
            f"{record.name}:{record.lineno} | {record.getMessage()}"
        )

        extra = getattr(record, "extra_fields", None)
        if extra:
            line += " [" + " ".join(f"{k}={v}" for k, v in extra.items()) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _formatter(mode: str, for_file: bool = False) -> logging.Formatter:
    if mode == "production":
        return JSONFormatter()
    if for_file:
        # no color codes in files
        return logging.Formatter(FILE_FORMAT)
    return HumanReadableFormatter()


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    mode: str = "development",
    log_dir: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the settlement logger

    Calling it again replaces the previous handlers.

    Args:
        name: Logger name (child loggers inherit the handlers)
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        mode: "development" or "production"
        log_dir: Directory for a rotating ``<name>.log`` (None/empty: console only)
        max_bytes: Rotation size of the log file
        backup_count: Rotated files to keep

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    # Handled here; do not repeat through the root logger
    logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_formatter(mode))
    logger.addHandler(console)

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            directory / f"{name}.log", maxBytes=max_bytes, backupCount=backup_count
        )
        rotating.setFormatter(_formatter(mode, for_file=True))
        logger.addHandler(rotating)

    logger.debug(f"Logging initialized: mode={mode}, level={level}, log_dir={log_dir}")
    return logger


def get_logger(
    name: Optional[str] = None, level: Optional[str] = None, mode: Optional[str] = None
) -> logging.Logger:
    """Return ``name``'s logger, configuring it from LOG_* env vars on first use."""
    name = name or ROOT_LOGGER_NAME
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    return setup_logging(
        name=name,
        level=level or os.environ.get("LOG_LEVEL", "INFO"),
        mode=mode or os.environ.get("LOG_MODE", "development"),
        log_dir=os.environ.get("LOG_DIR"),
    )


# Per task/thread fields; asyncio tasks each see their own copy
_context_fields: ContextVar[dict] = ContextVar("settlement_log_fields", default={})


def _install_record_factory() -> None:
    base_factory = logging.getLogRecordFactory()

    def factory(*args, **kwargs):
        record = base_factory(*args, **kwargs)
        fields = _context_fields.get()
        if fields:
            record.extra_fields = dict(fields)
        return record

    logging.setLogRecordFactory(factory)


_install_record_factory()


class LogContext:
    """Attach extra fields to every record created inside the block

    Fields live in a ContextVar, so concurrent broadcasts each keep their
    own ``network``/``relay`` tags. Nested blocks merge with the outer fields.

    Example:
        with LogContext(logger, listing_id=42, network="mainnet"):
            result = verify(tx, "mainnet", layout)
    """

    def __init__(self, logger: logging.Logger, **fields):
        self.logger = logger
        self.extra_fields = fields
        self._token = None

    def __enter__(self) -> logging.Logger:
        self._token = _context_fields.set({**_context_fields.get(), **self.extra_fields})
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        _context_fields.reset(self._token)
