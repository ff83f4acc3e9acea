"""
Logging setup for the relay.

Log records are written to stderr, either as one JSON object per line
or as plain text.  Secrets (API key, bearer tokens, ``ssn`` values) are
never passed to the logger; callers log key ids, actions and status
codes through ``extra=``.
"""

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = ("key_id", "action", "status_code", "fields")


class JSONFormatter(logging.Formatter):
    """Render a log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", as_json: bool = True) -> logging.Logger:
    """Configure the root logger with a single stream handler."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    if as_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] [%(levelname)s] %(name)s - %(message)s")
        )
    root.addHandler(handler)

    # httpx logs every request URL at INFO; keep it out of the way.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(level.upper())
    return root
