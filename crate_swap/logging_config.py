"""
Structured Logging Configuration

Provides:
- Correlation IDs so every log line of one basket run can be traced
- JSON formatting for machine parsing (file output)
- Human-readable console formatting
- Log rotation support
"""

import contextvars
import json
import logging
import logging.handlers
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union
from uuid import uuid4


correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
crate_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "crate_id", default=None
)


class CorrelationContext:
    """Context manager for setting correlation context."""

    def __init__(self, correlation_id: Optional[str] = None, crate_id: Optional[str] = None):
        self.correlation_id = correlation_id or str(uuid4())
        self.crate_id = crate_id
        self._tokens = []

    def __enter__(self):
        self._tokens.append((correlation_id_var, correlation_id_var.set(self.correlation_id)))
        if self.crate_id:
            self._tokens.append((crate_id_var, crate_id_var.set(self.crate_id)))
        return self

    def __exit__(self, *args):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_traceback: bool = True, extra_fields: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.include_traceback = include_traceback
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_var.get()
        crate_id = crate_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id
        if crate_id:
            log_data["crate_id"] = crate_id

        log_data.update(self.extra_fields)

        if record.exc_info and self.include_traceback:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data, default=str)


class StructuredFormatter(logging.Formatter):
    """Human-readable structured formatter for console output."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _timestamp(record).strftime("%Y-%m-%d %H:%M:%S")

        level = record.levelname
        if self.use_color and sys.stderr.isatty():
            level = f"{self.COLORS.get(level, '')}{level}{self.COLORS['RESET']}"

        parts = [f"[{timestamp}]", f"[{level}]", f"[{record.name}]", record.getMessage()]

        context_parts = []
        correlation_id = correlation_id_var.get()
        crate_id = crate_id_var.get()
        if correlation_id:
            context_parts.append(f"run={correlation_id[:8]}")
        if crate_id:
            context_parts.append(f"crate={crate_id}")
        if context_parts:
            parts.append(f"[{', '.join(context_parts)}]")

        if record.exc_info:
            parts.append("\n" + "".join(traceback.format_exception(*record.exc_info)))

        return " ".join(parts)


def setup_logging(
    level: Union[str, int] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    log_file: str = "crate_swap.log",
    json_format: bool = True,
    console_output: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for a rotating log file; no file output when None
        log_file: Name of the log file
        json_format: Use JSON formatting for file logs
        console_output: Log to stderr
        max_bytes: Max size of log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured root logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(StructuredFormatter(use_color=False))
        root_logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(StructuredFormatter(use_color=True))
        root_logger.addHandler(console_handler)

    return root_logger


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()
