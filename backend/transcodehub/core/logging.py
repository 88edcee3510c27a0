"""Structured logging bound to the request context.

Each record carries the correlation ID of the request that produced it and,
once the caller has been authenticated, the owner it acts for. That is
enough to follow one asset from upload through transcode to listing.
"""

import json
import logging
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
owner_id_var: ContextVar[Optional[str]] = ContextVar("owner_id", default=None)

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "correlation_id", "owner_id"}

NOISY_LOGGERS = ("uvicorn.access", "botocore", "boto3", "s3transfer", "urllib3", "httpx")


def get_correlation_id() -> str:
    """Correlation ID of the current context, generated on first use."""
    cid = correlation_id_var.get()
    if cid is None:
        cid = uuid.uuid4().hex
        correlation_id_var.set(cid)
    return cid


def bind_owner(owner_id: Optional[str]) -> None:
    """Attach the authenticated owner to every later record of this request."""
    owner_id_var.set(owner_id)


@contextmanager
def request_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Scope correlation and owner IDs to one request.

    Yields:
        The correlation ID in effect
    """
    cid = correlation_id or uuid.uuid4().hex
    cid_token = correlation_id_var.set(cid)
    owner_token = owner_id_var.set(None)
    try:
        yield cid
    finally:
        owner_id_var.reset(owner_token)
        correlation_id_var.reset(cid_token)


class ContextFilter(logging.Filter):
    """Copies the request context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.owner_id = owner_id_var.get() or "-"
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, include_stack_trace: bool = True):
        super().__init__()
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "owner_id": getattr(record, "owner_id", None),
        }

        context = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        }
        if context:
            entry["context"] = context

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }
            if self.include_stack_trace:
                entry["exception"]["stack_trace"] = traceback.format_exception(*record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: Log level name
        json_format: Emit JSON lines instead of plain text
        include_stack_trace: Include tracebacks in JSON error records
    """
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(ContextFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s owner=%(owner_id)s] %(message)s"
        ))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **context: Any,
) -> None:
    """Log an error, with the traceback when an exception is given."""
    logger.error(message, exc_info=exception, extra=context)


def log_warning(logger: logging.Logger, message: str, **context: Any) -> None:
    logger.warning(message, extra=context)
