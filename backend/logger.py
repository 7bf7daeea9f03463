"""Structured logging configuration for ChatRelay backend."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

_HANDLER_NAME = "chatrelay"


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed as extra={"fields": {...}}
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            log_data.update(fields)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Set up structured logging on the root logger.

    Safe to call more than once; the handler is replaced rather than duplicated.

    Args:
        log_level: Level name such as "INFO" or "DEBUG"
        log_format: "json" for one JSON object per line, anything else for plain text
    """
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.addHandler(handler)
