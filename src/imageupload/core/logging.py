"""Logging configuration for the EC2 image uploader."""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Context variable for storing the AWS region a call is addressed to
region_context: contextvars.ContextVar[str | None] = contextvars.ContextVar("region", default=None)

_STANDARD_FIELDS = frozenset(
    [
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName",
        "relativeCreated", "thread", "threadName", "exc_info",
        "exc_text", "stack_info", "getMessage", "taskName",
    ]
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line for unattended runs.

    Each record also carries the region of the call in flight and any
    ``extra`` fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                "%Y-%m-%dT%H:%M:%S.%fZ"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        region = region_context.get()
        if region:
            entry["region"] = region

        entry.update(
            (key, value) for key, value in record.__dict__.items() if key not in _STANDARD_FIELDS
        )

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["error_type"] = exc_type.__name__
            entry["error"] = str(exc_value)
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging() -> None:
    """Configure logging for a command-line run.

    All log output goes to stderr; stdout is reserved for the list of
    created images. Local runs get a plain text format, any other ENV gets
    single-line JSON.
    """
    from imageupload.core.config import settings

    handler = logging.StreamHandler(sys.stderr)

    if settings.ENV == "local":
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = JsonFormatter()

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # httpx logs every request at INFO
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
