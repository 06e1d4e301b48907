from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config.models import Settings
    from .core.signals import SignalCoordinator
    from .utils.progress import ProgressReporter


class LogLevel(str, Enum):
    """
    Console verbosity for one CLI invocation.

    Decides what is echoed to the terminal only; the unified log file
    always receives every record.
    """

    SILENT = "silent"
    NORMAL = "normal"
    VERBOSE = "verbose"

    @classmethod
    def from_flags(cls, *, verbose: bool = False, silent: bool = False) -> LogLevel:
        """Silent wins when both flags are given."""
        if silent:
            return cls.SILENT
        if verbose:
            return cls.VERBOSE
        return cls.NORMAL


@dataclass(frozen=True, slots=True)
class RunContext:
    """
    Everything an operation needs, set once at CLI entry and passed down explicitly.

    Fields:
    - settings: loaded DeviceConfig (read-only)
    - log_level: console verbosity
    - logger: structlog logger bound with the command name
    - progress: reporter matching log_level
    - confirm: yes/no question capability (stubbed in tests, always-yes with --yes)
    - signals: cleanup coordinator for this invocation
    """

    settings: Settings
    log_level: LogLevel
    logger: Any
    progress: ProgressReporter
    confirm: Callable[[str], bool]
    signals: SignalCoordinator
