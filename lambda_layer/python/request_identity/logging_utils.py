"""Logging utilities with structured JSON logging."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .identity import RequestIdentity


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


class StructuredLogger:
    """Structured JSON logger for Lambda functions."""

    def __init__(
        self,
        name: str,
        identity: Optional[RequestIdentity] = None,
        level: str = 'INFO'
    ):
        """Initialize structured logger.

        Args:
            name: Logger name (typically module or function name)
            identity: Optional resolved identity added to every entry
            level: Log level name
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self.identity = identity
        self.function_name = name

        # Replace handlers unless a JSON handler is already attached
        if not any(isinstance(h.formatter, JsonFormatter) for h in self.logger.handlers):
            self.logger.handlers = []
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonFormatter())
            self.logger.addHandler(handler)

    def bind(self, identity: RequestIdentity) -> 'StructuredLogger':
        """Return a logger for the same name carrying the given identity."""
        return StructuredLogger(
            self.function_name,
            identity=identity,
            level=logging.getLevelName(self.logger.level)
        )

    def _build_log_entry(
        self,
        level: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build structured log entry.

        Args:
            level: Log level
            message: Log message
            extra: Additional fields

        Returns:
            Structured log entry dictionary
        """
        entry = {
            "timestamp": _utc_timestamp(),
            "level": level,
            "function_name": self.function_name,
            "message": message
        }

        if self.identity:
            entry["correlation_id"] = self.identity.correlation_id
            entry["request_id"] = self.identity.request_id
            entry["trace_id"] = self.identity.trace_id
            entry["span_id"] = self.identity.span_id

        if extra:
            entry.update(extra)

        return entry

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        entry = self._build_log_entry("DEBUG", message, kwargs)
        self.logger.debug(json.dumps(entry))

    def info(self, message: str, **kwargs):
        """Log info message."""
        entry = self._build_log_entry("INFO", message, kwargs)
        self.logger.info(json.dumps(entry))


class JsonFormatter(logging.Formatter):
    """JSON formatter for log records."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record

        Returns:
            JSON formatted log string
        """
        # If message is already JSON, return as-is
        try:
            json.loads(record.getMessage())
            return record.getMessage()
        except (json.JSONDecodeError, ValueError):
            log_entry = {
                "timestamp": _utc_timestamp(),
                "level": record.levelname,
                "message": record.getMessage()
            }

            if record.exc_info:
                log_entry["exception"] = self.formatException(record.exc_info)

            return json.dumps(log_entry)


def get_logger(
    name: str,
    identity: Optional[RequestIdentity] = None,
    level: str = 'INFO'
) -> StructuredLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name
        identity: Optional resolved identity
        level: Log level name

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name, identity, level)
