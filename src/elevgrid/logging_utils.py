"""Logging setup shared by the elevgrid CLI and library callers.

Library modules only log through ``logging.getLogger(__name__)`` and attach
``tile`` or ``point`` extras; the handlers built here render that context
either as a ``[tile z/x/y]`` prefix or as top-level JSON fields.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

HUMAN_FORMAT = "%(context)s%(levelname)s: %(message)s"
NOISY_LOGGERS = ("httpx", "httpcore")

_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
    "context",
}


@dataclass(frozen=True)
class LogOptions:
    """Console verbosity plus an optional JSON-lines log file."""

    verbose: int = 0
    quiet: bool = False
    log_file: Path | None = None
    json_console: bool = False

    @property
    def console_level(self) -> int:
        if self.quiet:
            return logging.WARNING
        return logging.DEBUG if self.verbose > 0 else logging.INFO

    @property
    def library_level(self) -> int:
        # httpx logs every request at INFO.
        return logging.DEBUG if self.verbose > 1 else logging.WARNING


def describe_context(record: logging.LogRecord) -> str:
    """Return ``tile z/x/y`` or ``point N`` for records that carry either."""
    tile = getattr(record, "tile", None)
    if tile:
        return f"tile {tile}"
    point = getattr(record, "point", None)
    if point is not None:
        return f"point {point}"
    return ""


class ContextFilter(logging.Filter):
    """Set ``record.context`` so plain format strings can show it."""

    def filter(self, record: logging.LogRecord) -> bool:
        label = describe_context(record)
        record.context = f"[{label}] " if label else ""
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        payload: dict[str, Any] = {
            "time": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _console_handler(options: LogOptions) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(options.console_level)
    handler.addFilter(ContextFilter())
    if options.json_console:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(HUMAN_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(JsonFormatter())
    return handler


def configure_logging(options: LogOptions) -> logging.Logger:
    """Replace root handlers according to ``options`` and return the root logger."""
    handlers = [_console_handler(options)]
    if options.log_file:
        handlers.append(_file_handler(options.log_file))
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(options.library_level)
    return logging.getLogger()
