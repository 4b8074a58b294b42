"""
Structured logging for freeze pipeline events.

Outputs one JSON line per pipeline event so CI logs can be filtered by
version and stage. Ordinary diagnostics go through module loggers
(``logging.getLogger(__name__)``) and are formatted by
``configure_logging``.

Logged events:
- freeze.stage (orchestrator stage transitions)
- freeze.committed
- freeze.failed
- scaffold.created
- scaffold.skipped
- drift.checked

Usage:
    from freezeray.logger import FreezeEventLogger

    events = FreezeEventLogger(project="MyApp")
    events.log_stage(version="1.0.0", stage="built")
    events.log_committed(version="1.0.0", directory="FreezeRay/Fixtures/1.0.0", forced=False)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Pipeline events; silent until configure_logging attaches a handler
_event_logger = logging.getLogger("freezeray.events")


class JsonFormatter(logging.Formatter):
    """Format records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.name == _event_logger.name:
            # Events are already JSON
            return message
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": message,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    level: str = "warning",
    fmt: str = "text",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Install a single handler on the ``freezeray`` logger.

    Calling it again replaces the previous handler, so the CLI can
    reconfigure after loading the config file.

    Args:
        level: debug, info, warning or error
        fmt: "text" for console, "json" for log shippers
        stream: Output stream (default: stderr, keeping stdout for results)
    """
    root = logging.getLogger("freezeray")
    for handler in list(root.handlers):
        if getattr(handler, "_freezeray_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._freezeray_handler = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    root.addHandler(handler)
    root.setLevel(_LEVELS.get(level.lower(), logging.WARNING))
    return root


class FreezeEventLogger:
    """
    Structured logger for freeze pipeline events.

    Each entry carries the event name, the version it concerns and
    event-specific fields.
    """

    def __init__(self, project: str = "", service_name: str = "freezeray"):
        self.project = project
        self.service_name = service_name
        self._logger = _event_logger

    def _emit(self, event: str, version: str, level: str = "info", **extra_fields: Any) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "service": self.service_name,
            "version": version,
        }
        if self.project:
            entry["project"] = self.project
        entry.update({k: v for k, v in extra_fields.items() if v is not None})

        log_line = json.dumps(entry, default=str)

        if level == "error":
            self._logger.error(log_line)
        elif level == "warn":
            self._logger.warning(log_line)
        else:
            self._logger.info(log_line)

    def log_stage(self, version: str, stage: str, **fields: Any) -> None:
        """Log an orchestrator stage transition."""
        self._emit("freeze.stage", version, stage=stage, **fields)

    def log_committed(self, version: str, directory: str, forced: bool = False) -> None:
        self._emit("freeze.committed", version, directory=directory, forced=forced)

    def log_failed(self, version: str, kind: str, stage: Optional[str] = None) -> None:
        self._emit("freeze.failed", version, level="error", kind=kind, stage=stage)

    def log_scaffold(self, version: str, kind: str, path: str, created: bool) -> None:
        event = "scaffold.created" if created else "scaffold.skipped"
        self._emit(event, version, kind=kind, path=path)

    def log_drift_checked(self, version: str, status: str, expected: str, actual: str) -> None:
        self._emit(
            "drift.checked",
            version,
            level="warn" if status == "drift" else "info",
            status=status,
            expected=expected,
            actual=actual,
        )
