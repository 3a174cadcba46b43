"""
Structured logging support.

Provides JSON-formatted logging when enabled via EDGEHOST_LOG_FORMAT=json.
Records emitted during a reconciliation pass carry the app name so a
pass can be followed across the prober, reconciler and launcher.
"""

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any

# LogRecord attributes that are not user-supplied extras
_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Outputs logs in JSON format with structured fields:
    - timestamp: ISO 8601 timestamp
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - logger: Logger name
    - message: Log message
    - app: App of the reconciliation pass, when known
    - any additional fields passed through ``extra=``
    """

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z"

        log_entry: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        if record.funcName and record.funcName != "<module>":
            log_entry["function"] = record.funcName

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_FIELDS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def is_json_logging_enabled() -> bool:
    """True if EDGEHOST_LOG_FORMAT=json"""
    return os.getenv("EDGEHOST_LOG_FORMAT", "text").lower() == "json"


def setup_logging(level: str | None = None, log_file: str | None = None, force: bool = True) -> None:
    """
    Setup logging based on environment variables.

    Environment variables:
    - EDGEHOST_LOG_FORMAT: "json" or "text" (default: text)
    - EDGEHOST_LOG_LEVEL: Log level (default: INFO)
    - EDGEHOST_LOG_FILE: Optional log file path

    Args:
        level: Override log level (uses EDGEHOST_LOG_LEVEL if None)
        log_file: Override log file (uses EDGEHOST_LOG_FILE if None)
        force: Force reconfiguration of root logger
    """
    if level is None:
        level = os.getenv("EDGEHOST_LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = os.getenv("EDGEHOST_LOG_FILE")

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file))
        except OSError as e:
            print(f"Warning: Could not open log file {log_file}: {e}", file=sys.stderr)

    if is_json_logging_enabled():
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level.upper(), handlers=handlers, force=force)


class PassLogger(logging.LoggerAdapter):
    """
    Tags every record with the app whose pass is running.

    Usage:
        log = PassLogger(logging.getLogger(__name__), app="myapp")
        log.info("Starting proxy")  # record.app == "myapp"
    """

    def __init__(self, logger: logging.Logger, app: str):
        super().__init__(logger, {"app": app})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("app", self.extra["app"])
        kwargs["extra"] = extra
        return msg, kwargs
