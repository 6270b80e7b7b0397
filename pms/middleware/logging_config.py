"""
Logging setup for the appraisal API.

Production writes one JSON object per line. Development and tests get a
short colored line tagged with the acting npk and, when known, the IPP id.
LOG_LEVEL (app config first, then environment) picks the threshold.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# record attributes copied from ``extra={...}``
CONTEXT_FIELDS = (
    "npk",
    "role",
    "ipp_id",
    "event_type",
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


def _traceback(formatter: logging.Formatter, record: logging.LogRecord) -> str | None:
    if record.exc_info and record.exc_info[0] is not None:
        return formatter.formatException(record.exc_info)
    return None


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        trace = _traceback(self, record)
        if trace:
            entry["exception"] = trace
        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger <npk> [ipp] message (12ms)`` with a colored level."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.now().strftime("%H:%M:%S"),
            f"{self.LEVEL_COLORS.get(record.levelname, '')}{record.levelname:<8}{self.RESET}",
            record.name,
        ]
        npk = getattr(record, "npk", None)
        if npk:
            parts.append(f"<{npk}>")
        ipp_id = getattr(record, "ipp_id", None)
        if ipp_id:
            parts.append(f"[{ipp_id}]")
        parts.append(record.getMessage())
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            parts.append(f"({duration:.0f}ms)")

        line = " ".join(parts)
        trace = _traceback(self, record)
        return f"{line}\n{trace}" if trace else line


def _wants_json(app) -> bool:
    return not app.config.get("DEBUG", False) and not app.config.get("TESTING", False)


def configure_logging(app):
    """Install one stderr handler on the root logger for ``app``."""
    as_json = _wants_json(app)
    level_name = (app.config.get("LOG_LEVEL") or os.getenv("LOG_LEVEL") or ("INFO" if as_json else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLineFormatter() if as_json else ConsoleFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING", False):
        app.logger.info("Logging ready (%s, %s)", level_name, "json" if as_json else "console")
