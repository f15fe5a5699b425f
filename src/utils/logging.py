"""Structured JSON logging configuration."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any

# Request and response bodies are cut to this many bytes in log records.
BODY_SNAPSHOT_LIMIT = 1024

# Matches secret values in JSON bodies and protobuf text format alike.
_SECRET_VALUE = re.compile(rb'((?:old_|new_)?password|token)("?\s*:\s*)"(?:[^"\\]|\\.)*"')


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    # Standard LogRecord attributes that should not be included as extra fields
    _STANDARD_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
        'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname',
        'process', 'processName', 'relativeCreated', 'thread', 'threadName',
        'exc_info', 'exc_text', 'stack_info', 'taskName'
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # logger.info("message", extra={"userId": "123"}) sets userId on the record
        for key, value in record.__dict__.items():
            if key not in self._STANDARD_ATTRS and not callable(value):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_structured_logging(level: int = logging.INFO) -> logging.Handler:
    """Configure structured JSON logging for the application.

    The root logger, uvicorn and grpc all write through the same handler.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for name in ("uvicorn", "uvicorn.error", "grpc"):
        logging.getLogger(name).handlers = [handler]
        logging.getLogger(name).propagate = False

    # Request logging is done by our own middleware
    logging.getLogger("uvicorn.access").disabled = True
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    return handler


def snapshot(body: bytes | str | None, limit: int = BODY_SNAPSHOT_LIMIT) -> str:
    """Return at most ``limit`` bytes of ``body`` as text for a log record.

    Password and token values are masked before truncation.
    """
    if not body:
        return ''
    if isinstance(body, str):
        body = body.encode('utf-8')
    body = _SECRET_VALUE.sub(rb'\1\2"***"', body)
    text = body[:limit].decode('utf-8', errors='replace')
    if len(body) > limit:
        text += f'...({len(body) - limit} more bytes)'
    return text
