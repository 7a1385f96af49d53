"""Structured logging utilities for the meme recommendation service.

Provides a centralized logging configuration with consistent formatting
across all modules, plus a JSON formatter for long-running processes whose
records are shipped to a log collector.
"""

import json
import logging
import sys

# Attributes present on every LogRecord; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Fields passed through ``extra`` are merged into the top-level object.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the record as JSON."""
        log_obj = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_obj[key] = value

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def get_logger(
    name: str, level: int = logging.INFO, json_format: bool = False
) -> logging.Logger:
    """Create or retrieve a named logger with standard formatting.

    Args:
        name: The logger name, typically __name__ of the calling module.
        level: The logging level. Defaults to INFO.
        json_format: Emit JSON records instead of the plain text format.

    Returns:
        A configured Logger instance.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        if json_format:
            formatter: logging.Formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger
