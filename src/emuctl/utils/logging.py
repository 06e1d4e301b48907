from __future__ import annotations

import json
import logging
import sys
import threading
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, merge_contextvars

from ..context import LogLevel

LOG_FILE_NAME = "emulator.log"

_log_dir = Path("logs")
_console_level = LogLevel.NORMAL
_file_lock = threading.RLock()


def _ensure_log_dir() -> None:
    try:
        _log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass


def log_file_path() -> Path:
    """Return the unified log file that every command appends to."""
    return _log_dir / LOG_FILE_NAME


def _drop_none_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    return {k: v for k, v in event_dict.items() if v is not None}


def _file_sink_processor(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """
    Append the record to logs/emulator.log as one JSON line.

    Runs before the console gate so the file receives every record
    whatever the console verbosity is.
    """
    _ensure_log_dir()
    # Tracebacks are rendered for the file only; the console renderer formats its own
    record = structlog.processors.format_exc_info(logger, method_name, dict(event_dict))
    line = json.dumps(record, ensure_ascii=False, default=str)
    try:
        with _file_lock:
            with log_file_path().open("a", encoding="utf-8") as f:
                f.write(line + "\n")
    except OSError:
        # Never break execution because of log write issues
        pass
    return event_dict


def _console_gate(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """
    Decide whether the record is echoed to the terminal.

    verbose: everything; normal: errors only, without tracebacks; silent: nothing.
    """
    if _console_level is LogLevel.VERBOSE:
        return event_dict
    if _console_level is LogLevel.NORMAL and event_dict.get("level") in ("error", "critical"):
        event_dict.pop("exc_info", None)
        return event_dict
    raise structlog.DropEvent


def bind_context(*, command: str | None = None, avd: str | None = None) -> None:
    """
    Bind the command name and AVD into the logging context.

    This data is then automatically included in all structured log records.
    """
    bind_contextvars(command=command, avd=avd)


_CONFIGURED = False


def setup_logging(level: LogLevel = LogLevel.NORMAL, log_dir: Path | None = None) -> Path:
    """
    Configure structured logging for the CLI.

    Includes:
    - Every record at DEBUG and above written to <log_dir>/emulator.log as JSON
    - Timestamp (key: "timestamp") and context (command, avd) via contextvars
    - Console echo to stderr gated by *level*

    Called once at CLI entry; calling it again replaces the previous settings.

    Returns:
        Path: The unified log file path.
    """
    global _CONFIGURED, _console_level, _log_dir

    _console_level = level
    if log_dir is not None:
        _log_dir = Path(log_dir)

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
            _drop_none_values,
            _file_sink_processor,
            _console_gate,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        # sys.stderr is looked up per logger so redirected streams are honoured
        logger_factory=lambda *_args: structlog.PrintLogger(sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        # Loggers created before setup_logging() must pick up the final configuration
        cache_logger_on_first_use=False,
    )

    _CONFIGURED = True
    return log_file_path()


def get_logger(name: str | None = None) -> Any:
    """
    Get a structlog logger instance.

    Ensures logging is configured even in plain unit-test runs that bypass the CLI.
    """
    if not _CONFIGURED:
        setup_logging()
    return structlog.get_logger(name or __name__)


__all__ = [
    "setup_logging",
    "bind_context",
    "log_file_path",
    "get_logger",
]
