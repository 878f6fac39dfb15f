"""
Structured JSON logging for upload observability.

Every line carries the request correlation ID; lines written while an upload
is being ingested also carry the uploader and upload type. Backing-store
calls are timed through log_storage_operation().
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

# Request correlation, set by the HTTP middleware
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Upload being ingested in this context (user_id, upload_type)
upload_context_var: ContextVar[dict | None] = ContextVar("upload_context", default=None)

QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "s3transfer", "PIL", "sqlalchemy")

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


# -----------------------------------------------------------------------------
# Formatting
# -----------------------------------------------------------------------------


class RequestIdFilter(logging.Filter):
    """Expose the current request ID as %(request_id)s for plain-text output."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "request_id": "...",
     "user_id": 7, "upload_type": "composer", "event": "upload_created", ...}
    """

    EXTRA_FIELDS = (
        "event",
        "store",
        "operation",
        "key",
        "duration_ms",
        "size_bytes",
        "upload_id",
        "sha1",
        "user_id",
        "url",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id

        entry.update(upload_context_var.get() or {})

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure root logging.

    Args:
        json_format: JSON lines when True, human-readable lines otherwise
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def upload_log_context(user_id: int | None, upload_type: str):
    """Tag every log line inside the block with the uploader and upload type."""
    token = upload_context_var.set({"user_id": user_id, "upload_type": upload_type})
    try:
        yield
    finally:
        upload_context_var.reset(token)


@contextmanager
def log_storage_operation(store: str, operation: str, key: str):
    """
    Time one backing-store call.

    Logs completion at DEBUG with duration and size, or failure at ERROR
    with duration, then re-raises.

    Usage:
        with log_storage_operation("s3", "store", key) as metrics:
            client.put_object(...)
            metrics["size_bytes"] = size
    """
    logger = logging.getLogger("uploads.storage")
    start = time.perf_counter()
    metrics: dict = {"size_bytes": 0}
    fields = {"store": store, "operation": operation, "key": key}

    try:
        yield metrics
    except Exception as e:
        logger.error(
            f"{store} {operation} failed: {key} - {e}",
            extra={**fields, "event": f"{store}_{operation}_failed", "duration_ms": _elapsed_ms(start)},
        )
        raise

    logger.debug(
        f"{store} {operation} completed: {key} ({metrics['size_bytes']} bytes)",
        extra={
            **fields,
            "event": f"{store}_{operation}_complete",
            "duration_ms": _elapsed_ms(start),
            "size_bytes": metrics["size_bytes"],
        },
    )
