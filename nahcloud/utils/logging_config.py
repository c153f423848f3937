"""Logging configuration with optional JSON output."""

import json
import logging
import sys
from datetime import datetime, timezone

# Attributes every LogRecord has; anything else came in through `extra=`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}

# Keys never written to the log output
_REDACTED_KEYS = {"token", "authorization", "password", "secret"}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON including `extra=` fields."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if key.lower() in _REDACTED_KEYS:
                value = "***"
            data[key] = value
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    stream=None,
) -> logging.Logger:
    """Configure the root logger.

    Args:
        level: Log level name
        json_format: Emit JSON lines instead of plain text
        stream: Output stream (default: stderr)

    Returns:
        The configured root logger
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(root.level, logging.INFO))
    return root
