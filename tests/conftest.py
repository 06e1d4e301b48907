from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from structlog.contextvars import clear_contextvars

from emuctl.config.models import Settings
from emuctl.context import LogLevel, RunContext
from emuctl.core.signals import SignalCoordinator
from emuctl.utils.cli import ProcessResult
from emuctl.utils.logging import get_logger, setup_logging
from emuctl.utils.process import ProcessHandle
from emuctl.utils.progress import ProgressReporter

Response = Any  # ProcessResult or a callable building one from the argv


def result(rc: int = 0, out: str = "", err: str = "") -> ProcessResult:
    return ProcessResult(stdout=out, stderr=err, returncode=rc)


def _contains(argv: tuple[str, ...], tokens: tuple[str, ...]) -> bool:
    n = len(tokens)
    return any(argv[i : i + n] == tokens for i in range(len(argv) - n + 1))


class FakeShell:
    """
    Stand-in for run_cmd.

    Responses are chosen by the most recently added rule whose tokens appear
    contiguously in the command line; unmatched commands succeed with no output.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.kwargs: list[dict[str, Any]] = []
        self._rules: list[tuple[tuple[str, ...], Response]] = []

    def on(self, *tokens: str, rc: int = 0, out: str = "", err: str = "") -> None:
        self._rules.append((tokens, result(rc, out, err)))

    def on_call(self, *tokens: str, fn: Callable[[tuple[str, ...]], ProcessResult]) -> None:
        self._rules.append((tokens, fn))

    def __call__(self, args: Any, **kw: Any) -> ProcessResult:
        argv = tuple(os.fspath(a) for a in args)
        self.calls.append(argv)
        self.kwargs.append(kw)
        for tokens, response in reversed(self._rules):
            if _contains(argv, tokens):
                return response(argv) if callable(response) else response
        return result()

    def called(self, *tokens: str) -> bool:
        return any(_contains(c, tokens) for c in self.calls)

    def index(self, *tokens: str) -> int:
        """Position of the first call containing *tokens* (for ordering checks)."""
        for i, c in enumerate(self.calls):
            if _contains(c, tokens):
                return i
        raise AssertionError(f"no call contains {tokens}: {self.calls}")


class FakeClock:
    """Deterministic monotonic clock whose sleep() advances time instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePopen:
    """Minimal Popen double: alive until it receives a signal."""

    def __init__(self, pid: int = 4242) -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.signals: list[int] = []

    def poll(self) -> int | None:
        return self.returncode

    def send_signal(self, sig: int) -> None:
        self.signals.append(sig)
        self.returncode = -int(sig)

    def wait(self, timeout: float | None = None) -> int | None:
        return self.returncode


class RecordingProgress(ProgressReporter):
    """Progress reporter that remembers every call instead of printing."""

    level = LogLevel.VERBOSE

    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple[str, str]] = []

    def start(self, message: str) -> None:
        self.events.append(("start", message))

    def update(self, message: str) -> None:
        self.events.append(("update", message))

    def succeed(self, message: str) -> None:
        self.events.append(("succeed", message))

    def fail(self, message: str) -> None:
        self.events.append(("fail", message))

    def info(self, message: str) -> None:
        self.events.append(("info", message))

    def warn(self, message: str) -> None:
        self.events.append(("warn", message))

    def echo(self, message: str, audience: Any = "normal") -> None:
        self.events.append(("echo", message))

    def error(self, message: str, audience: Any = "always") -> None:
        self.events.append(("error", message))

    def messages(self, kind: str) -> list[str]:
        return [m for k, m in self.events if k == kind]


class Confirmer:
    """Scripted answers for yes/no questions; answers 'no' once exhausted."""

    def __init__(self, *answers: bool) -> None:
        self.answers = list(answers)
        self.questions: list[str] = []

    def __call__(self, question: str) -> bool:
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else False


class RecordingLogger:
    """Logger double collecting (level, event, fields) tuples."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _add(self, level: str, event: str, **kw: Any) -> None:
        self.records.append((level, event, kw))

    def debug(self, event: str, **kw: Any) -> None:
        self._add("debug", event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._add("info", event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._add("warning", event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._add("error", event, **kw)

    def bind(self, **kw: Any) -> RecordingLogger:
        return self

    def events(self, level: str | None = None) -> list[str]:
        return [e for lvl, e, _ in self.records if level is None or lvl == level]


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """
    Run every test in a clean working directory with logging sent to tmp_path.

    SDK and EMU_* variables from the developer's shell are removed so that
    settings built in tests come from defaults and explicit values only.
    """
    for name in list(os.environ):
        if name.startswith("EMU_") or name in ("ANDROID_HOME", "ANDROID_SDK_ROOT", "JAVA_HOME"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    setup_logging(LogLevel.SILENT, tmp_path / "logs")
    yield
    clear_contextvars()


@pytest.fixture
def shell(monkeypatch: pytest.MonkeyPatch) -> FakeShell:
    """Replace run_cmd in every device module with one FakeShell."""
    fake = FakeShell()
    for target in (
        "emuctl.device.adb.run_cmd",
        "emuctl.device.avd.run_cmd",
        "emuctl.device.android_emulator.run_cmd",
    ):
        monkeypatch.setattr(target, fake)
    return fake


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Drive wait_for_condition with a fake clock."""
    fake = FakeClock()
    monkeypatch.setattr(
        "emuctl.core.waits.time", SimpleNamespace(monotonic=fake.monotonic, sleep=fake.sleep)
    )
    return fake


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "android_home": str(tmp_path / "sdk"),
            "avd_home": tmp_path / "avd",
            "project_root": tmp_path,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_handle() -> Callable[..., tuple[ProcessHandle, FakePopen]]:
    def _make(label: str = "emulator", pid: int = 4242) -> tuple[ProcessHandle, FakePopen]:
        proc = FakePopen(pid)
        return ProcessHandle(proc, label), proc  # type: ignore[arg-type]

    return _make


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def make_ctx(make_settings: Callable[..., Settings]) -> Callable[..., RunContext]:
    """
    Build a RunContext wired to test doubles.

    The context's confirm is a Confirmer, its progress a RecordingProgress and
    its SignalCoordinator neither installs handlers nor exits (exit codes are
    appended to ``ctx.signals.exits``).
    """

    def _make(
        settings: Settings | None = None, answers: tuple[bool, ...] = ()
    ) -> RunContext:
        progress = RecordingProgress()
        exits: list[int] = []
        signals = SignalCoordinator(install=False, exit=exits.append, echo=progress.error)
        signals.exits = exits  # type: ignore[attr-defined]
        return RunContext(
            settings=settings or make_settings(),
            log_level=LogLevel.VERBOSE,
            logger=get_logger("tests"),
            progress=progress,
            confirm=Confirmer(*answers),
            signals=signals,
        )

    return _make
