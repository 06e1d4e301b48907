from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .logging import get_logger

_log = get_logger(__name__)


def _decode(data: str | bytes | bytearray | None) -> str:
    if isinstance(data, bytes | bytearray):
        return data.decode(errors="replace")
    return data or ""


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Captured outcome of one synchronous command execution."""

    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @classmethod
    def from_completed(cls, proc: subprocess.CompletedProcess) -> ProcessResult:
        """Build a result from subprocess.CompletedProcess, decoding bytes to text."""
        return cls(
            stdout=_decode(proc.stdout),
            stderr=_decode(proc.stderr),
            returncode=proc.returncode,
        )


def run_cmd(
    args: Sequence[str | os.PathLike[str]],
    *,
    input: str | None = None,
    env: Mapping[str, str] | None = None,
    silent: bool = False,
    logger: Any | None = None,
    timeout: float | None = None,
) -> ProcessResult:
    """
    Execute a command and wait for it to finish.

    A non-zero exit code is never raised: it is returned in the result and the
    caller decides what it means. Only a failure to launch the process propagates.

    Args:
        args (Sequence[str | PathLike]): Executable followed by its arguments.
        input (str | None): Text written to the process stdin.
        env (Mapping[str, str] | None): Full environment for the child (inherits ours if None).
        silent (bool): Do not log the command line and its output lines at debug level.
        logger (Any | None): structlog logger to write to (module logger by default).
        timeout (float | None): Optional timeout in seconds.

    Returns:
        ProcessResult: stdout/stderr as text and the exit code.

    Raises:
        OSError: If the executable cannot be started (e.g. FileNotFoundError).
        subprocess.TimeoutExpired: If *timeout* elapses.
    """
    log = logger or _log
    argv = [os.fspath(a) for a in args]
    name = os.path.basename(argv[0])

    if not silent:
        log.debug("Executing command", action="exec", cmd=" ".join(argv))

    try:
        proc = subprocess.run(
            argv,
            input=input,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except OSError as e:
        log.error("Failed to execute command", action="exec", cmd=" ".join(argv), error=str(e))
        raise

    result = ProcessResult.from_completed(proc)

    if not silent:
        for line in (result.stdout + "\n" + result.stderr).splitlines():
            if line.strip():
                log.debug(f"[{name}] {line}")

    if not result.ok:
        log.warning(
            "Command exited with non-zero code",
            action="exec",
            cmd=" ".join(argv),
            returncode=result.returncode,
        )
        if result.stderr.strip():
            log.error(f"stderr: {result.stderr.strip()}", action="exec", cmd=name)

    return result
