"""Shared logging configuration.

Provides JSON-formatted logging for gcauth.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Extra attributes copied into the JSON payload when present on a record
EXTRA_FIELDS = ("error_code", "cert_name", "player_id", "bundle_id", "url")


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    log_file: str = None,
    log_level: str = None,
    stream=None,
):
    """Configure logging with JSON formatter.

    Args:
        log_file: Path to log file. Defaults to GC_AUTH_LOG_FILE env var;
            no file handler is installed when neither is set.
        log_level: Log level. Defaults to GC_AUTH_LOG_LEVEL env var or 'INFO'.
        stream: Console stream. Defaults to sys.stdout.
    """
    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(JsonFormatter())
    handlers = [console_handler]

    log_file = log_file or os.getenv("GC_AUTH_LOG_FILE")
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    log_level = (log_level or os.getenv("GC_AUTH_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = handlers
