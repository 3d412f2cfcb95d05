"""Structured JSON logging formatter for fiscal pipeline observability."""

import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = ("document_id", "retry_count", "access_key", "status_code", "reason")


class JSONFormatter(logging.Formatter):
    """Output log records as single-line JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "":
                log_obj[field] = value
        return json.dumps(log_obj, default=str)
