"""
Logging Configuration Module

Structured JSON logs for the platform core:
- Request context (correlation id, request id, acting principal)
- Bank account numbers shown by their last four digits only
- Secrets and deposit evidence removed entirely
- A Prometheus counter of log events per level
"""

import contextlib
import logging
import logging.config
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import UTC, datetime
from logging import LogRecord
from typing import Any, Dict, Iterator, Optional, Union
from uuid import UUID

import prometheus_client
from pythonjsonlogger import jsonlogger

from crestcat.core.settings import settings

# Request-scoped context, filled by the middleware and the auth dependency
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
request_id: ContextVar[str] = ContextVar("request_id", default="")
user_id: ContextVar[Optional[Union[str, UUID]]] = ContextVar("user_id", default=None)

LOG_EVENTS = prometheus_client.Counter(
    "log_events_total",
    "Total number of log events",
    ["level", "module"]
)

REDACTED = "***REDACTED***"

# Keys whose values never reach the log stream
SECRET_KEYS = ("password", "secret", "token", "authorization", "api_key", "deposit_proof")

# Keys whose values are reduced to their last four characters
PARTIAL_KEYS = ("account_number",)


def _tail(value: Any) -> str:
    text = str(value)
    return f"****{text[-4:]}" if len(text) > 4 else "****"


def scrub(payload: Any) -> Any:
    """Return a copy of ``payload`` with secrets removed and account numbers shortened."""
    if isinstance(payload, dict):
        cleaned = {}
        for key, value in payload.items():
            lowered = key.lower() if isinstance(key, str) else ""
            if any(marker in lowered for marker in SECRET_KEYS):
                cleaned[key] = REDACTED
            elif any(marker in lowered for marker in PARTIAL_KEYS) and value is not None:
                cleaned[key] = _tail(value)
            else:
                cleaned[key] = scrub(value)
        return cleaned
    if isinstance(payload, (list, tuple)):
        return [scrub(item) for item in payload]
    return payload


class LedgerJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping every record with request context."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["environment"] = settings.app.ENVIRONMENT
        log_record["location"] = f"{record.module}:{record.lineno}"

        for key, var in (("correlation_id", correlation_id), ("request_id", request_id), ("user_id", user_id)):
            value = var.get()
            if value:
                log_record[key] = str(value)

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            log_record["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb)
            }
            log_record.pop("exc_info", None)

        log_record.update(scrub(dict(log_record)))


class CountingLogger(logging.Logger):
    """Logger that counts every emitted event in ``log_events_total``."""

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: Optional[Dict[str, Any]] = None,
        stack_info: bool = False,
        stacklevel: int = 1
    ) -> None:
        LOG_EVENTS.labels(level=logging.getLevelName(level), module=self.name).inc()
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1
        )


# Installed at import so module-level get_logger() calls get the counting class
logging.setLoggerClass(CountingLogger)


@contextlib.contextmanager
def log_duration(logger: logging.Logger, operation: str, **fields: Any) -> Iterator[None]:
    """Log ``operation`` with its wall time in milliseconds once the block exits."""
    started = time.perf_counter()
    failed = False
    try:
        yield
    except Exception:
        failed = True
        raise
    finally:
        logger.log(
            logging.WARNING if failed else logging.INFO,
            f"{operation} {'failed' if failed else 'completed'}",
            extra={"duration_ms": round((time.perf_counter() - started) * 1000, 3), **fields}
        )


def setup_logging() -> None:
    """Route every logger to stdout, as JSON unless LOG_JSON_LOGS is off."""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": LedgerJsonFormatter,
                "format": "%(timestamp)s %(level)s %(name)s %(message)s",
                "json_ensure_ascii": False
            },
            "plain": {
                "format": "%(asctime)s %(levelname)-8s %(name)s %(message)s"
            }
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "json" if settings.logging.JSON_LOGS else "plain"
            }
        },
        "root": {
            "level": settings.logging.LEVEL,
            "handlers": ["stdout"]
        },
        "loggers": {
            "uvicorn.access": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
            "aiosqlite": {"level": "WARNING"}
        }
    })

    get_logger(__name__).info("Logging configured", extra={"log_level": settings.logging.LEVEL})


def get_logger(name: str) -> logging.Logger:
    """Module logger; use ``get_logger(__name__)``."""
    return logging.getLogger(name)
