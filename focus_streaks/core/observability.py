"""
Structured logging setup.

JSON lines in production, human-readable text for local development.
setup_logging() is called once from the application lifespan.
"""
import json
import logging
from datetime import datetime, timezone

# Extra attributes promoted to top-level JSON keys when present on a record.
_EXTRA_KEYS = ("user_id", "session_id", "error_code", "attempt", "qualified_dates")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    root = logging.getLogger()
    # Idempotent under repeated app startups (tests create several clients).
    for existing in list(root.handlers):
        if getattr(existing, "_focus_streaks", False):
            root.removeHandler(existing)
    handler._focus_streaks = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
