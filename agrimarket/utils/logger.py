"""
Structured Logging Utility.

JSON-per-line logging for the chat pipeline and realtime channels, where
events are easier to follow with their conversation and message ids attached.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional


class JsonLineFormatter(logging.Formatter):
    """Renders a record and its ``fields`` extra as one JSON document."""

    def format(self, record: logging.LogRecord) -> str:
        document = {
            "timestamp": datetime.utcfromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        document.update(getattr(record, "fields", {}))
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)


class StructuredLogger:
    """Structured logger carrying a fixed context into every record."""

    def __init__(self, name: str, level: int = logging.INFO, context: Optional[Dict[str, Any]] = None):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            level: Logging level
            context: Fields attached to every record from this logger
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.context = dict(context or {})

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonLineFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def bind(self, **context) -> "StructuredLogger":
        """Return a logger for the same component with extra fixed fields."""
        return StructuredLogger(self.logger.name, self.logger.level, {**self.context, **context})

    def _emit(self, level: int, message: str, exc_info: bool = False, **fields):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, exc_info=exc_info, extra={"fields": {**self.context, **fields}})

    def debug(self, message: str, **fields):
        self._emit(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self._emit(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self._emit(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self._emit(logging.ERROR, message, **fields)

    def exception(self, message: str, **fields):
        """Log at error level with the active traceback attached."""
        self._emit(logging.ERROR, message, exc_info=True, **fields)


chat_logger = StructuredLogger("agrimarket.chat")
realtime_logger = StructuredLogger("agrimarket.realtime")
