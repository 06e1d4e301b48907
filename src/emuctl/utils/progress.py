from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from rich.console import Console
from rich.status import Status

from ..context import LogLevel

Audience = Literal["always", "normal", "verbose"]


class ProgressReporter(ABC):
    """
    User-facing step reporting for one CLI invocation.

    The implementation is chosen once from the LogLevel; operations call the
    same methods regardless of verbosity.
    """

    level: LogLevel

    def __init__(
        self, console: Console | None = None, err_console: Console | None = None
    ) -> None:
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    @abstractmethod
    def start(self, message: str) -> None:
        """Begin a step."""
        ...

    def update(self, message: str) -> None:
        """Replace the text of the current step (spinner only)."""

    @abstractmethod
    def succeed(self, message: str) -> None: ...

    @abstractmethod
    def fail(self, message: str) -> None: ...

    @abstractmethod
    def info(self, message: str) -> None: ...

    @abstractmethod
    def warn(self, message: str) -> None: ...

    def stop(self) -> None:
        """Stop any live display."""

    def _allowed(self, audience: Audience) -> bool:
        return (
            audience == "always"
            or (audience == "normal" and self.level is not LogLevel.SILENT)
            or (audience == "verbose" and self.level is LogLevel.VERBOSE)
        )

    def echo(self, message: str, audience: Audience = "normal") -> None:
        """Print a plain message to stdout if *audience* includes the current level."""
        if self._allowed(audience):
            self.console.print(message, markup=False)

    def error(self, message: str, audience: Audience = "always") -> None:
        """Print a plain message to stderr if *audience* includes the current level."""
        if self._allowed(audience):
            self.err_console.print(message, markup=False)


class QuietProgress(ProgressReporter):
    """silent: steps are not shown at all."""

    level = LogLevel.SILENT

    def start(self, message: str) -> None:
        pass

    def succeed(self, message: str) -> None:
        pass

    def fail(self, message: str) -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def warn(self, message: str) -> None:
        pass


class LineProgress(ProgressReporter):
    """normal: one line per finished step, nothing while it runs."""

    level = LogLevel.NORMAL

    def start(self, message: str) -> None:
        pass

    def succeed(self, message: str) -> None:
        self.console.print(f"✔ {message}", markup=False)

    def fail(self, message: str) -> None:
        self.err_console.print(f"✖ {message}", markup=False)

    def info(self, message: str) -> None:
        self.console.print(f"ℹ {message}", markup=False)

    def warn(self, message: str) -> None:
        self.err_console.print(f"⚠ {message}", markup=False)


class SpinnerProgress(ProgressReporter):
    """verbose: live spinner whose text follows the running step."""

    level = LogLevel.VERBOSE

    def __init__(
        self, console: Console | None = None, err_console: Console | None = None
    ) -> None:
        super().__init__(console, err_console)
        self._status: Status | None = None

    def start(self, message: str) -> None:
        if self._status is None:
            self._status = self.console.status(message)
            self._status.start()
        else:
            self._status.update(message)

    def update(self, message: str) -> None:
        if self._status is not None:
            self._status.update(message)

    def _finish(self, symbol: str, message: str) -> None:
        self.stop()
        self.console.print(f"{symbol} {message}", markup=False)

    def succeed(self, message: str) -> None:
        self._finish("✔", message)

    def fail(self, message: str) -> None:
        self._finish("✖", message)

    def info(self, message: str) -> None:
        self._finish("ℹ", message)

    def warn(self, message: str) -> None:
        self._finish("⚠", message)

    def stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None


def make_progress(level: LogLevel) -> ProgressReporter:
    """Pick the reporter for *level*."""
    if level is LogLevel.VERBOSE:
        return SpinnerProgress()
    if level is LogLevel.SILENT:
        return QuietProgress()
    return LineProgress()
