"""
Structured logging for the API and the Celery workers.

Each record is one JSON object per line. Log calls pass context through
`extra=`; only the names in LOG_CONTEXT_FIELDS reach the output so ad-hoc
attributes never leak into the log stream.
"""
import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from storybook.core.config import settings

LOG_CONTEXT_FIELDS = (
    # pipeline
    "book_id", "user_id", "page_number", "run_id", "attempt", "status", "error",
    # http access line
    "request_id", "method", "path", "status_code", "latency_ms",
    # circuit breaker
    "breaker_name", "old_state", "new_state",
)

# chatty third-party loggers: per-request lines from httpx while polling the renderer
QUIET_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    def __init__(self, env: str | None = None) -> None:
        super().__init__()
        self.env = env

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.env:
            entry["env"] = self.env
        for name in LOG_CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _handlers(formatter: logging.Formatter) -> list[logging.Handler]:
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream]
    if settings.log_file:
        rotating = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        rotating.setFormatter(formatter)
        handlers.append(rotating)
    return handlers


def configure_logging() -> None:
    """Replace the root handlers with JSON output. Safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = _handlers(JsonFormatter(env=settings.app_env))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
