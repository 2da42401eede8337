"""
Process log output for the collector.

Every device is polled on its own thread, so log lines from different
devices interleave freely on stderr. Each record is therefore written as
one JSON object carrying the poll thread's name (``poll-<address>``) next
to the message, which lets a log shipper or ``jq`` split the stream back
out per device. Tracebacks from unexpected poll failures travel inside
the same object instead of spilling over several lines.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
import logging
from datetime import UTC, datetime


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON line.

    Keys: ``timestamp`` (UTC, ISO-8601), ``level``, ``logger``,
    ``thread`` and ``message``. ``exc_info`` is added only for records
    logged with an exception.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: int | str = logging.INFO) -> None:
    """Send all collector logging to stderr as JSON lines.

    Called once at startup, before settings are validated, and again with
    the configured ``LOG_LEVEL``. Calling it repeatedly replaces the
    handler rather than stacking a second one.

    Args:
        level: Numeric level or a name such as ``"debug"``.
    """
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
