"""Structured logging setup for the queue service.

JSON output for log aggregation, or plain text for local development.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

# Structured fields promoted to top-level keys of each JSON record
STANDARD_FIELDS = (
    "lane",
    "job_id",
    "attempts",
    "priority",
    "resource_key",
    "delay_s",
    "status",
)

_RESERVED = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "message", "asctime", "taskName",
}


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in STANDARD_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = value

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED or key in STANDARD_FIELDS or key.startswith("_"):
                continue
            log_obj[key] = value

        return json.dumps(log_obj, default=str, ensure_ascii=False)


class JobLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps lane/job context on every record."""

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        fmt: "json" for structured output, anything else for plain text
    """
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def job_logger(
    name: str, lane: str, job_id: int, resource_key: Optional[str] = None
) -> JobLoggerAdapter:
    """Create a logger pre-configured for one job."""
    extra = {"lane": lane, "job_id": job_id}
    if resource_key:
        extra["resource_key"] = resource_key
    return JobLoggerAdapter(logging.getLogger(name), extra)
