"""
Logging configuration.

- **Console handler** — coloured, human-readable lines for local runs.
- **Rotating JSON file** — one JSON object per line for log aggregation.
- **Error-only rotating JSON file** — a separate stream for alerting.
- **Request-ID correlation** — :class:`RequestIDFilter` copies the id set by
  ``RequestIDMiddleware`` onto every record, so every line logged while
  serving a request (engine lines included) carries it.

Call ``setup_logging()`` once at startup; every module then logs through
``logging.getLogger(__name__)``.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from alphafund.core.config import Settings, settings

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Extra attributes copied into JSON lines when a caller passes them via ``extra=``.
_EXTRA_FIELDS = ("status_code", "method", "path", "elapsed_ms", "account", "proposal_id")


class RequestIDFilter(logging.Filter):
    """Attach the current request id (if any) to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Output example::

        {"timestamp": "2026-01-05T10:30:00.123+00:00", "level": "INFO",
         "logger": "alphafund.engine.controller",
         "message": "Deposit: alice paid 1000 for 1000 shares",
         "module": "controller", "function": "deposit", "line": 131,
         "request_id": "5b0c..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = getattr(record, "request_id", None)
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter with ANSI-coloured levels."""

    COLOURS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        request_id = getattr(record, "request_id", None)
        rid_str = f" [{request_id[:8]}]" if request_id else ""

        base = (
            f"{timestamp} | {colour}{record.levelname:<8}{self.RESET} | "
            f"{record.name}{rid_str} | {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def _level_for(config: Settings) -> int:
    if config.DEBUG:
        return logging.DEBUG
    return getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)


def setup_logging(config: Settings = settings) -> None:
    """
    Configure the root logger with console + rotating file handlers.

    Idempotent: a root logger that already has handlers is left alone.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level = _level_for(config)
    root_logger.setLevel(level)
    request_filter = RequestIDFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.addFilter(request_filter)
    root_logger.addHandler(console_handler)

    os.makedirs(config.LOG_DIR, exist_ok=True)
    log_file = os.path.join(config.LOG_DIR, "alphafund.log")
    file_handler = RotatingFileHandler(
        filename=log_file,
        maxBytes=config.LOG_FILE_MAX_BYTES,
        backupCount=config.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(JSONFormatter())
    file_handler.addFilter(request_filter)
    root_logger.addHandler(file_handler)

    error_handler = RotatingFileHandler(
        filename=os.path.join(config.LOG_DIR, "alphafund-error.log"),
        maxBytes=config.LOG_FILE_MAX_BYTES,
        backupCount=config.LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(JSONFormatter())
    error_handler.addFilter(request_filter)
    root_logger.addHandler(error_handler)

    # ── Quieten chatty third-party loggers ──
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if config.DEBUG else logging.WARNING
    )

    root_logger.info(
        "Logging initialized — level=%s, file=%s, max_size=%s MB, backups=%d",
        logging.getLevelName(level),
        log_file,
        config.LOG_FILE_MAX_BYTES // (1024 * 1024),
        config.LOG_FILE_BACKUP_COUNT,
    )
