"""Logging configuration."""
import datetime
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor

APP_LOGGER = "stank_venv"
IGNORED_LOGGERS = [
    "mcp.server.session",
    "mcp.server.stdio",
    "aiohttp",
    "asyncio",
]
CALLER_KEYS = ("module", "lineno", "filename")


def add_timestamp(_, __, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to the event dict."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return event_dict


class CompactJSONRenderer:
    """Single-line JSON renderer with minimal output."""

    def __call__(self, _: Any, __: str, event_dict: EventDict) -> str:
        items = {
            "ts": event_dict.pop("timestamp", None),
            "lvl": event_dict.pop("level", "???"),
            "msg": event_dict.pop("event", ""),
            **{k: v for k, v in event_dict.items() if k in CALLER_KEYS},
        }
        if other := {k: v for k, v in event_dict.items() if k not in CALLER_KEYS}:
            items["data"] = other
        return json.dumps(items, separators=(",", ":"), default=str)


def configure_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """Configure structured logging for the application.

    Records go to stderr so they never interleave with the progress
    display on stdout. When ``log_file`` is given every record at
    ``level`` or above is also appended there.
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.handlers = []
    app_logger.setLevel(numeric_level)
    app_logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    app_logger.addHandler(handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            app_logger.warning(
                json.dumps({"msg": "log_file_unavailable", "path": str(log_file), "error": str(e)})
            )
        else:
            file_handler.setFormatter(logging.Formatter("%(message)s"))
            app_logger.addHandler(file_handler)

    for name in IGNORED_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        add_timestamp,
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FILENAME,
            ]
        ),
        structlog.processors.format_exc_info,
        CompactJSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    if not name.startswith(APP_LOGGER):
        name = f"{APP_LOGGER}.{name}"
    return structlog.get_logger(name)
