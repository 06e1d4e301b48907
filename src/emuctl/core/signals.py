from __future__ import annotations

import signal
import sys
from collections.abc import Callable, Iterable
from types import FrameType
from typing import Any

from ..utils.logging import get_logger
from ..utils.process import ProcessHandle

_log = get_logger(__name__)

CleanupFn = Callable[[], object]


def _default_signals() -> tuple[signal.Signals, ...]:
    # SIGHUP does not exist on Windows
    names = ("SIGINT", "SIGTERM", "SIGHUP")
    return tuple(getattr(signal, n) for n in names if hasattr(signal, n))


class SignalCoordinator:
    """
    Process-wide registry of cleanup callbacks run when the CLI is interrupted.

    On SIGINT/SIGTERM/SIGHUP every registered callback runs once, in registration
    order, then the process exits with code 0. A second signal while cleanup is
    in progress is ignored. A failing callback is logged and the rest still run.

    Tracked processes (register_process) are signalled on cleanup unless they
    were handed off with detach()/detach_all() first.
    """

    def __init__(
        self,
        signals: Iterable[int] | None = None,
        *,
        echo: Callable[[str], None] | None = None,
        exit: Callable[[int], Any] = sys.exit,
        install: bool = True,
    ) -> None:
        """
        Initialize the coordinator and install its signal handlers.

        Args:
            signals (Iterable[int] | None): Signals to intercept (default INT, TERM, HUP).
            echo (Callable[[str], None] | None): Where user-facing messages go.
            exit (Callable[[int], Any]): Called with 0 once cleanup finishes.
            install (bool): Install handlers now; tests may drive handle_signal() directly.
        """
        self._callbacks: list[CleanupFn] = []
        self._processes: dict[ProcessHandle, CleanupFn] = {}
        self._cleaning_up = False
        self._echo = echo or (lambda msg: print(msg, file=sys.stderr))
        self._exit = exit
        self._previous: dict[int, Any] = {}
        self._signals = tuple(signals) if signals is not None else _default_signals()
        if install:
            self.install()

    @property
    def cleaning_up(self) -> bool:
        return self._cleaning_up

    def install(self) -> None:
        for sig in self._signals:
            self._previous[sig] = signal.signal(sig, self.handle_signal)
        _log.debug("Signal handlers installed", signals=[signal.Signals(s).name for s in self._signals])

    def restore(self) -> None:
        """Put back the handlers that were active before install()."""
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._previous.clear()

    def register(self, fn: CleanupFn) -> None:
        self._callbacks.append(fn)

    def register_process(self, handle: ProcessHandle, label: str | None = None) -> None:
        """
        Terminate *handle* on cleanup if it is still running and still owned.

        Args:
            handle (ProcessHandle): Process to track.
            label (str | None): Name shown to the user when it is stopped.
        """
        name = label or handle.label

        def _kill() -> None:
            if handle not in self._processes or not handle.owned:
                return
            pid = handle.pid
            if pid is None:
                return
            self._echo(f"\n🛑 Stopping {name} (PID: {pid})...")
            handle.terminate()

        self._processes[handle] = _kill
        self._callbacks.append(_kill)

    def detach(self, handle: ProcessHandle) -> None:
        """Release *handle* so neither cleanup nor CLI exit will signal it."""
        kill = self._processes.pop(handle, None)
        if kill is None:
            return
        try:
            self._callbacks.remove(kill)
        except ValueError:
            pass
        if handle.owned:
            handle.release()

    def detach_all(self) -> None:
        """
        Hand off every tracked process before a normal exit.

        Their cleanup callbacks are removed from the registry and the
        handles are released.
        """
        for handle in list(self._processes):
            self.detach(handle)

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """Signal handler entry point: run cleanup exactly once, then exit(0)."""
        if self._cleaning_up:
            return
        self._cleaning_up = True

        name = signal.Signals(signum).name
        self._echo(f"\n\n⚠️  Received {name}, cleaning up...")
        _log.warning("Received signal, running cleanup", signal=name, callbacks=len(self._callbacks))

        for fn in list(self._callbacks):
            try:
                fn()
            except Exception as e:
                _log.error("Cleanup callback failed", error=str(e), exc_info=True)
                self._echo(f"Cleanup error: {e}")

        self._echo("✅ Cleanup complete")
        _log.info("Cleanup complete", signal=name)
        self._exit(0)
