from __future__ import annotations

import os
import shlex
from typing import Any

from ..utils.cli import ProcessResult, run_cmd
from ..utils.logging import get_logger

EMULATOR_SERIAL_PREFIX = "emulator-"


def parse_devices(output: str) -> dict[str, str]:
    """
    Parse `adb devices` output into {serial: state}.

    The header line and daemon start-up chatter ("* daemon ...") are skipped.
    """
    devices: dict[str, str] = {}
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("*") or line.lower().startswith("list of devices"):
            continue
        parts = line.split()
        if len(parts) >= 2:
            devices[parts[0]] = parts[1]
    return devices


def parse_packages(output: str) -> set[str]:
    """Parse `pm list packages` output ("package:<name>" per line) into package names."""
    prefix = "package:"
    return {
        line.strip()[len(prefix) :]
        for line in output.splitlines()
        if line.strip().startswith(prefix)
    }


class AdbClient:
    """
    Narrow adapter over the `adb` command line.

    All parsing of adb's text output lives here so the rest of the code
    deals with sets and booleans only.
    """

    def __init__(
        self, adb: str | os.PathLike[str], *, serial: str | None = None, logger: Any | None = None
    ) -> None:
        self.adb = os.fspath(adb)
        self.serial = serial
        self._log = logger or get_logger(__name__)

    def run(self, *args: str, silent: bool = True, input: str | None = None) -> ProcessResult:
        """Utility for executing adb commands for self.serial (or the only device)."""
        base = [self.adb]
        if self.serial is not None:
            base += ["-s", self.serial]
        return run_cmd(base + list(args), silent=silent, input=input, logger=self._log)

    def shell(self, *args: str, silent: bool = True) -> ProcessResult:
        return self.run("shell", *args, silent=silent)

    # ----- devices -----
    def list_attached_devices(self) -> set[str]:
        """Serials of devices in the 'device' (online) state."""
        out = self.run("devices").stdout
        return {serial for serial, state in parse_devices(out).items() if state == "device"}

    def has_running_emulator(self) -> bool:
        return any(s.startswith(EMULATOR_SERIAL_PREFIX) for s in self.list_attached_devices())

    def get_prop(self, name: str) -> str:
        return self.shell("getprop", name).stdout.strip()

    def boot_completed(self) -> bool:
        return self.get_prop("sys.boot_completed") == "1"

    def kill_emulator(self) -> ProcessResult:
        return self.run("emu", "kill")

    # ----- packages -----
    def list_packages(self) -> set[str]:
        return parse_packages(self.shell("pm", "list", "packages").stdout)

    def is_installed(self, package: str) -> bool:
        return package in self.list_packages()

    def install(self, apk: str | os.PathLike[str]) -> ProcessResult:
        return self.run("install", os.fspath(apk), silent=False)

    def uninstall(self, package: str) -> ProcessResult:
        return self.run("uninstall", package, silent=False)

    def grant(self, package: str, permission: str) -> ProcessResult:
        return self.shell("pm", "grant", package, permission)

    def set_app_op(self, package: str, op: str, mode: str = "allow") -> ProcessResult:
        return self.shell("appops", "set", package, op, mode)

    def launch(self, package: str) -> ProcessResult:
        """Start the launcher activity of *package* via monkey."""
        return self.shell(
            "monkey", "-p", package, "-c", "android.intent.category.LAUNCHER", "1", silent=False
        )

    def remove_path(self, path: str) -> ProcessResult:
        return self.shell("rm", "-rf", shlex.quote(path))

    def enable_overlay(self, overlay: str) -> ProcessResult:
        return self.shell("cmd", "overlay", "enable", overlay, silent=False)

    # ----- files -----
    def screencap(self, device_path: str) -> ProcessResult:
        return self.shell("screencap", "-p", device_path)

    def pull(self, device_path: str, local_path: str | os.PathLike[str]) -> ProcessResult:
        return self.run("pull", device_path, os.fspath(local_path))
