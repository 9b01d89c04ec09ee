"""
Venue Execution - Logging Setup.

============================================================
PURPOSE
============================================================
Root logger configuration for the CLI and embedding apps.

Modules only call logging.getLogger(__name__); handlers and
formatters are installed once, here.

FORMATS:
- json: one JSON object per line
- text: pipe-separated human-readable lines

============================================================
"""

import json
import logging
import sys
from typing import Optional


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, session_id: Optional[str] = None):
        super().__init__()
        self._session_id = session_id or ""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "session_id": self._session_id,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    session_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging on the root logger.

    Args:
        level: Log level
        log_format: Output format (json or text)
        session_id: Tag added to every line

    Returns:
        Package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter(session_id)
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {session_id or '-'} | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # SQL engine chatter stays at WARNING unless debugging
    if log_level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("venue_execution")
