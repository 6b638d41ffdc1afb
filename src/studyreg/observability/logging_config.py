"""
Logging Configuration

One root handler, text for development and one-line JSON for log aggregation.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from studyreg.config import LoggingSettings

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# LogRecord attributes that are not user-supplied extras
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Formats each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = {k: v for k, v in record.__dict__.items() if k not in _RESERVED}
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(settings: LoggingSettings | None = None) -> logging.Handler:
    """
    Install the studyreg handler on the root logger.

    Calling again replaces the previously installed handler.

    Returns:
        The installed handler.
    """
    settings = settings or LoggingSettings()
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_studyreg", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler._studyreg = True  # type: ignore[attr-defined]
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root.addHandler(handler)
    root.setLevel(settings.log_level)
    return handler
