"""
Structured JSON logging for the webhook relay.

One JSON object per line:

    {"ts": "2026-01-31T12:00:00.000Z", "level": "INFO", "logger": "payrelay.services.ingestion",
     "msg": "...", "correlation_id": "...",
     "event": {"id": "evt_...", "type": "...", "trust_mode": "verified", "category": "..."},
     "http": {"method": "POST", "path": "/webhook", "status": 200, "duration_ms": 3.1},
     "log_file": "logs/webhooks-....log.gz"}

"event" and "http" appear only when the record carries the matching extras
(logger.info(..., extra={"event_id": ..., "trust_mode": ...})). The
correlation ID comes from a contextvar set per request by the middleware.
"""
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

from payrelay.utils.timestamps import utc_iso

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

ACCESS_LOGGER_NAME = "payrelay.access"

# record attribute -> key inside the "event" / "http" objects
EVENT_EXTRAS = {
    "event_id": "id",
    "event_type": "type",
    "trust_mode": "trust_mode",
    "category": "category",
}
HTTP_EXTRAS = {
    "http_method": "method",
    "http_path": "path",
    "http_status": "status",
    "duration_ms": "duration_ms",
}


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """UUID4 hex, 32 chars."""
    return uuid.uuid4().hex


class CorrelationIdFilter(logging.Filter):
    """Stamps the current request's correlation ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id()
        return True


def _collect(record: logging.LogRecord, fields: dict[str, str]) -> dict:
    collected = {}
    for attr, key in fields.items():
        value = getattr(record, attr, None)
        if value is not None:
            collected[key] = value
    return collected


class StructuredJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": utc_iso(datetime.fromtimestamp(record.created, timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }

        event = _collect(record, EVENT_EXTRAS)
        if event:
            entry["event"] = event
        http = _collect(record, HTTP_EXTRAS)
        if http:
            entry["http"] = http

        log_file = getattr(record, "log_file", None)
        if log_file is not None:
            entry["log_file"] = log_file

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def log_request(method: str, path: str, status: int, duration_ms: float) -> None:
    """
    One access line per request. Rejected deliveries (4xx) log at WARNING
    and server errors at ERROR, so webhook failures stand out from traffic.
    """
    if status >= 500:
        level = logging.ERROR
    elif status >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.getLogger(ACCESS_LOGGER_NAME).log(
        level,
        "%s %s -> %d (%.1f ms)", method, path, status, duration_ms,
        extra={
            "http_method": method,
            "http_path": path,
            "http_status": status,
            "duration_ms": round(duration_ms, 1),
        },
    )


def configure_structured_logging(log_level: str = "INFO") -> None:
    """Install the JSON handler on the root logger. Call once from create_app()."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # payrelay.access replaces uvicorn's access log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    for noisy in ("httpcore", "httpx", "stripe"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
