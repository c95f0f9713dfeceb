"""
app/core/logging.py

Purpose: Logging configuration

- Standardizes log format
- Controls log levels
- Enables observability in production
- Structured logging for easy parsing
- Context tracking (user_id, event_type, state)
- Mirrors application logs into the Logs sheet (best effort)
"""

import asyncio
import contextvars
import logging
import sys
import json
from datetime import datetime
from typing import Any, Dict, Optional, Set
from app.core.config import settings

APP_LOGGER_NAME = "linebot"
FALLBACK_LOGGER_NAME = "linebot_fallback"

_log_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("log_context", default={})


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter for structured JSON logging in production.
    Makes logs easily parseable by monitoring tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add extra context if available
        if hasattr(record, "user_id"):
            log_data["user_id"] = record.user_id
        if hasattr(record, "event_type"):
            log_data["event_type"] = record.event_type
        if hasattr(record, "state"):
            log_data["state"] = record.state

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development environment.
    """

    def format(self, record: logging.LogRecord) -> str:
        colors = {
            "DEBUG": "\033[36m",      # Cyan
            "INFO": "\033[32m",       # Green
            "WARNING": "\033[33m",    # Yellow
            "ERROR": "\033[31m",      # Red
            "CRITICAL": "\033[35m",   # Magenta
        }
        reset = "\033[0m"

        color = colors.get(record.levelname, reset)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        message = f"{color}[{timestamp}] {record.levelname:<8}{reset} {record.name}: {record.getMessage()}"

        context_parts = []
        if hasattr(record, "user_id"):
            context_parts.append(f"user={record.user_id}")
        if hasattr(record, "event_type"):
            context_parts.append(f"event={record.event_type}")
        if hasattr(record, "state"):
            context_parts.append(f"state={record.state}")

        if context_parts:
            message += f" [{', '.join(context_parts)}]"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


class AuditLogHandler(logging.Handler):
    """
    Copies application log records into the Logs sheet.

    The store call is scheduled on the running event loop; records emitted
    outside of a loop are only written to the console handlers. Failures are
    reported on the fallback logger and never reach the caller.
    """

    def __init__(self, store, level: int = logging.INFO):
        super().__init__(level)
        self.store = store
        self._pending: Set[asyncio.Task] = set()
        self.addFilter(ContextFilter())

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(FALLBACK_LOGGER_NAME):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        try:
            text = record.getMessage()
            task = loop.create_task(self.store.append_log(record.levelname, text))
        except Exception as e:
            get_fallback_logger().error(f"Failed to schedule audit log write: {e}")
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush_pending(self) -> None:
        """Waits for scheduled writes (used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def get_fallback_logger() -> logging.Logger:
    """
    Console-only logger for failures of the audit sink itself.
    Never propagates to the application handlers.
    """
    fallback = logging.getLogger(FALLBACK_LOGGER_NAME)
    if not fallback.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        fallback.addHandler(handler)
        fallback.propagate = False
    return fallback


def setup_logging():
    """
    Configures application-wide logging with appropriate formatters.
    Uses JSON format in production, human-readable in development.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    if settings.DEBUG:
        log_level = logging.DEBUG

    handler = logging.StreamHandler(sys.stdout)

    if settings.is_production:
        formatter = StructuredFormatter()
    else:
        formatter = DevelopmentFormatter()

    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.info(
        "Logging configured",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "debug_mode": settings.DEBUG
        }
    )

    return logger


def attach_audit_handler(store, debug: Optional[bool] = None) -> AuditLogHandler:
    """
    Attaches an AuditLogHandler to the application logger.
    DEBUG records are mirrored only in debug mode.
    """
    debug = settings.DEBUG if debug is None else debug
    handler = AuditLogHandler(store, level=logging.DEBUG if debug else logging.INFO)
    logging.getLogger(APP_LOGGER_NAME).addHandler(handler)
    return handler


def detach_audit_handler(handler: AuditLogHandler) -> None:
    logging.getLogger(APP_LOGGER_NAME).removeHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")


class ContextFilter(logging.Filter):
    """
    Stamps the active LogContext fields onto records.

    Fields passed explicitly through `extra=` win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class LogContext:
    """
    Context manager for adding structured context to logs.

    The context lives in a ContextVar, so concurrent tasks each see their own.

    Usage:
        with LogContext(user_id="U123", state="WAITING_NAME"):
            logger.info("Processing name input")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
        self._token = None
