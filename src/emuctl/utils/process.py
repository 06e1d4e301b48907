from __future__ import annotations

import os
import re
import signal
import subprocess
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import IO, Any

from ..errors import ProcessOwnershipError
from .logging import get_logger

_log = get_logger(__name__)

# Output lines that are worth surfacing even when the console is not verbose
ERROR_PATTERN = re.compile(r"(ERROR|FATAL|WARNING|Failed)", re.IGNORECASE)


class ProcessHandle:
    """
    Owned reference to a long-running background process.

    Exactly one of terminate() or release() may be called, once:
    - terminate(): send a signal and give up ownership
    - release(): hand the process off so it may outlive the CLI
    """

    OWNED = "owned"
    TERMINATED = "terminated"
    RELEASED = "released"

    def __init__(self, proc: subprocess.Popen[Any], label: str) -> None:
        self._proc = proc
        self.label = label
        self._state = self.OWNED
        # Reentrant: a signal handler may terminate the handle while this thread holds the lock
        self._lock = threading.RLock()
        self.readers: list[threading.Thread] = []

    @property
    def pid(self) -> int | None:
        """PID of the process while it is still running, otherwise None."""
        return self._proc.pid if self.is_alive() else None

    @property
    def state(self) -> str:
        return self._state

    @property
    def owned(self) -> bool:
        return self._state == self.OWNED

    def is_alive(self) -> bool:
        return self._proc.poll() is None

    def _settle(self, new_state: str) -> None:
        with self._lock:
            if self._state != self.OWNED:
                raise ProcessOwnershipError(
                    f"{self.label} (PID {self._proc.pid}) is already {self._state}"
                )
            self._state = new_state

    def terminate(self, sig: int = signal.SIGTERM) -> None:
        """
        Send *sig* to the process (if it is still running) and drop ownership.

        Raises:
            ProcessOwnershipError: If the handle was already terminated or released.
        """
        self._settle(self.TERMINATED)
        if self.is_alive():
            _log.info("Terminating process", label=self.label, pid=self._proc.pid, signal=sig)
            try:
                self._proc.send_signal(sig)
            except ProcessLookupError:
                pass

    def release(self) -> None:
        """
        Transfer ownership out of the CLI: nobody will signal the process on exit.

        Raises:
            ProcessOwnershipError: If the handle was already terminated or released.
        """
        self._settle(self.RELEASED)
        _log.info("Process released", label=self.label, pid=self._proc.pid)

    def wait(self, timeout: float | None = None) -> int:
        return self._proc.wait(timeout=timeout)


def _pump(
    stream: IO[str], on_line: Callable[[str], None]
) -> None:
    """Read *stream* line by line until EOF, handing each non-empty line to *on_line*."""
    try:
        for raw in iter(stream.readline, ""):
            line = raw.rstrip("\r\n")
            if line.strip():
                on_line(line)
    except (OSError, ValueError):
        # Stream closed underneath us
        pass
    finally:
        try:
            stream.close()
        except OSError:
            pass


def spawn_process(
    args: Sequence[str | os.PathLike[str]],
    *,
    label: str | None = None,
    env: Mapping[str, str] | None = None,
    silent: bool = False,
    logger: Any | None = None,
) -> ProcessHandle:
    """
    Start a background process without waiting for it.

    Output is never buffered in memory: daemon threads read stdout and stderr
    line by line and forward each line to the logger. Lines matching
    ERROR_PATTERN are logged at error level; other stdout lines at info and
    other stderr lines at debug, unless *silent*.

    The child runs in its own session so terminal signals sent to the CLI
    do not reach it directly; stopping it is the caller's (or the
    SignalCoordinator's) decision.

    Args:
        args (Sequence[str | PathLike]): Executable followed by its arguments.
        label (str | None): Human-readable name for logs (defaults to the executable name).
        env (Mapping[str, str] | None): Full environment for the child.
        silent (bool): Forward only error-pattern lines.
        logger (Any | None): structlog logger to write to.

    Returns:
        ProcessHandle: Handle owning the new process.

    Raises:
        OSError: If the executable cannot be started.
    """
    log = logger or _log
    argv = [os.fspath(a) for a in args]
    name = label or os.path.basename(argv[0])

    if not silent:
        log.info("Starting process", action="spawn", cmd=" ".join(argv))

    proc: subprocess.Popen[str] = subprocess.Popen(
        argv,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=dict(env) if env is not None else None,
        text=True,
        errors="replace",
        bufsize=1,
        start_new_session=True,
    )
    handle = ProcessHandle(proc, name)

    def _stdout_line(line: str) -> None:
        if ERROR_PATTERN.search(line):
            log.error(f"[{name}] {line}")
        elif not silent:
            log.info(f"[{name}] {line}")

    def _stderr_line(line: str) -> None:
        if ERROR_PATTERN.search(line):
            log.error(f"[{name}] {line}")
        elif not silent:
            log.debug(f"[{name}] {line}")

    for stream, on_line, suffix in (
        (proc.stdout, _stdout_line, "stdout"),
        (proc.stderr, _stderr_line, "stderr"),
    ):
        if stream is None:
            continue
        t = threading.Thread(
            target=_pump,
            args=(stream, on_line),
            name=f"{name}-{suffix}",
            daemon=True,
        )
        t.start()
        handle.readers.append(t)

    log.info("Process started", action="spawn", label=name, pid=proc.pid)
    return handle
