from __future__ import annotations

import json
from pathlib import Path

import pytest

from emuctl.context import LogLevel
from emuctl.utils.logging import bind_context, get_logger, log_file_path, setup_logging


def _records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_file_receives_every_level_even_when_silent(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """The unified log gets DEBUG records as JSON while the console stays quiet."""
    path = setup_logging(LogLevel.SILENT, tmp_path / "logs")
    assert path == tmp_path / "logs" / "emulator.log" == log_file_path()

    log = get_logger("test")
    log.debug("hello", foo=123)
    log.error("bad")

    data = _records(path)
    assert data[0]["event"] == "hello"
    assert data[0]["level"] == "debug"
    assert data[0]["foo"] == 123
    assert "timestamp" in data[0]
    assert data[1]["level"] == "error"
    assert capsys.readouterr().err == ""


def test_normal_console_shows_errors_only(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    setup_logging(LogLevel.NORMAL, tmp_path)
    log = get_logger("test")
    log.info("routine step")
    try:
        raise RuntimeError("kaboom")
    except RuntimeError:
        log.error("step failed", exc_info=True)

    err = capsys.readouterr().err
    assert "routine step" not in err
    assert "step failed" in err
    assert "Traceback" not in err

    # The traceback is kept in the file
    failed = [r for r in _records(log_file_path()) if r["event"] == "step failed"][0]
    assert "RuntimeError: kaboom" in failed["exception"]


def test_verbose_console_shows_everything(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    setup_logging(LogLevel.VERBOSE, tmp_path)
    get_logger("test").debug("adb output line")
    assert "adb output line" in capsys.readouterr().err


def test_bound_context_is_written(tmp_path: Path) -> None:
    setup_logging(LogLevel.SILENT, tmp_path)
    bind_context(command="start", avd="Pixel_7_API_35")
    get_logger("test").info("Starting emulator", pid=None)

    record = _records(log_file_path())[-1]
    assert record["command"] == "start"
    assert record["avd"] == "Pixel_7_API_35"
    assert "pid" not in record
