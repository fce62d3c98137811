"""Structured logging for the panel.

Records carry the request context (request_id, user_id, user_name,
server_id, action) and the active OpenTelemetry trace/span ids, so a single
server operation can be followed across the API, the daemon calls and the
MySQL DDL it triggers.
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from pythonjsonlogger import jsonlogger

from hostpanel.config import settings
from hostpanel.utils.context import get_context, get_trace_context

CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "user_name",
    "server_id",
    "action",
    "trace_id",
    "span_id",
)

# Third-party loggers kept at WARNING
NOISY_LOGGERS = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "httpx",
    "httpcore",
    "aiomysql",
    "opentelemetry",
)


class ContextInjectionFilter(logging.Filter):
    """Copy request context and trace ids onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = {**get_context(), **get_trace_context()}
        for key, value in fields.items():
            setattr(record, key, value)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per line with level, logger and context fields."""

    def add_fields(
        self, log_record: dict, record: logging.LogRecord, message_dict: dict
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault(
            "timestamp",
            datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        )
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        log_record.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )


class ColoredConsoleFormatter(logging.Formatter):
    """Human-readable output for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        # The record is shared with other handlers
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _build_formatter() -> logging.Formatter:
    if settings.LOG_FORMAT == "json":
        return CustomJsonFormatter("%(level)s %(logger)s %(message)s")
    return ColoredConsoleFormatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """Install a single stdout handler on the root logger.

    ``LOG_FORMAT`` selects JSON (``json``) or colored text (``console``);
    ``LOG_LEVEL`` sets the root level.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextInjectionFilter())
    handler.setFormatter(_build_formatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_timer(operation: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """Log how long a remote call took, including when it raised.

        with log_timer("daemon.create_server", logger):
            await self._post("/api/v1/servers/create", ...)
    """
    logger = logger or logging.getLogger(__name__)
    started = time.perf_counter()
    outcome = "ok"
    try:
        yield
    except BaseException:
        outcome = "error"
        raise
    finally:
        logger.info(
            f"Operation completed: {operation}",
            extra={
                "operation": operation,
                "outcome": outcome,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
