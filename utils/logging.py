import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

from config import settings

# Set by the HTTP middleware so pipeline logs carry the caller's request id
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, Cloud Logging compatible.

    Fields: severity, message, timestamp (ISO 8601, UTC), logger, and when
    present request_id, context (dict passed via `extra`) and traceback.
    Values json can't encode (Paths, enums) are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "severity": record.levelname if record.levelno else "DEFAULT",
            "message": record.getMessage(),
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "logger": record.name,
        }

        request_id = getattr(record, "request_id", None) or request_id_var.get()
        if request_id:
            log_entry["request_id"] = request_id

        context = getattr(record, "context", None)
        if context:
            log_entry["context"] = context

        if record.exc_info and record.exc_info[0]:
            log_entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str | None = None) -> logging.Logger:
    """Attach the JSON handler to the 'whittle' logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    app_logger = logging.getLogger("whittle")
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    level_name = (level or settings.log_level).upper()
    app_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Pillow logs every plugin lookup at DEBUG
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return app_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"whittle.{name}")
