"""
JSON-lines logging for the service.

Event names are the log message (payment_verified, download_rollback, ...);
context goes in `extra` and only whitelisted keys are emitted. Token strings
and PayPal credentials are never passed as extra; token ids are.
"""
import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from paygate.core.config import settings


class JsonFormatter(logging.Formatter):
    """JSON log formatter with support for extra fields."""

    # Fields to extract from log record's extra dict
    EXTRA_FIELDS = (
        "request_id", "path", "method", "status_code", "latency_ms",
        "transaction_id", "token_id", "subject", "source", "error",
        "status", "expected", "got", "bytes_sent", "evicted",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def configure_logging() -> None:
    formatter = JsonFormatter()
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    # httpx logs every outbound request at INFO, including PayPal order URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    handlers = [handler]
    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    root.handlers = handlers
