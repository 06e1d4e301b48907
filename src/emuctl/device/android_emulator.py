from __future__ import annotations

import os
import subprocess
from collections.abc import Callable
from typing import Any

from ..config.models import Settings
from ..config.sdk import AndroidPaths
from ..core.waits import wait_for_condition
from ..utils.cli import run_cmd
from ..utils.logging import get_logger
from ..utils.process import ProcessHandle, spawn_process
from .adb import AdbClient

THREE_BUTTON_NAV_OVERLAY = "com.android.internal.systemui.navbar.threebutton"


class AndroidEmulatorManager:
    """
    Manages the lifecycle of an Android emulator process.

    Provides methods to detect, launch, wait for boot milestones, and stop the emulator.
    """

    def __init__(self, settings: Settings, paths: AndroidPaths, *, logger: Any | None = None) -> None:
        """
        Initialize AndroidEmulatorManager.

        Args:
            settings (Settings): Device configuration (AVD name, emulator options, timeouts).
            paths (AndroidPaths): Resolved SDK tool locations.
            logger (Any | None): structlog logger; module logger by default.
        """
        self.settings = settings
        self.paths = paths
        self.avd = settings.avd.name
        self._log = logger or get_logger(__name__)
        self.adb = AdbClient(paths.adb, logger=self._log)

    @property
    def process_pattern(self) -> str:
        """pgrep/pkill pattern matching this AVD's emulator command line."""
        return f"emulator.*{self.avd}"

    def is_running(self) -> bool:
        out = run_cmd(["pgrep", "-f", self.process_pattern], silent=True, logger=self._log)
        return bool(out.stdout.strip())

    def emulator_args(self) -> list[str]:
        """Command line options derived from GPU mode, RAM size and the emulator toggles."""
        avd = self.settings.avd
        opts = self.settings.emulator
        args = ["-avd", avd.name, "-memory", str(avd.ram_size), "-gpu", avd.gpu_mode]
        if opts.no_audio:
            args.append("-no-audio")
        if opts.no_boot_anim:
            args.append("-no-boot-anim")
        if opts.no_metrics:
            args.append("-no-metrics")
        return args

    def launch(self) -> ProcessHandle:
        """
        Start the emulator as a detached background process.

        Output is streamed into the unified log; the returned handle owns the process.
        """
        env = {
            **os.environ,
            "DISPLAY": self.settings.emulator.display,
            "ANDROID_HOME": os.fspath(self.paths.android_home),
        }
        cmd = [os.fspath(self.paths.emulator), *self.emulator_args()]
        self._log.info(
            "Starting Android emulator",
            action="emulator_start",
            avd=self.avd,
            cmd=" ".join(cmd),
        )
        handle = spawn_process(cmd, label="emulator", env=env, logger=self._log)
        self._log.info(
            "Emulator process started",
            action="emulator_started",
            avd=self.avd,
            pid=handle.pid,
        )
        return handle

    def wait_until_listed(self, progress: Callable[[int], None] | None = None) -> bool:
        """
        Wait for an emulator to be listed by `adb devices` in the 'device' state.

        Bounded by Settings.boot_timeout (EMU_BOOT_TIMEOUT).
        """
        self._log.info(
            "Waiting for device to appear in ADB",
            action="emulator_wait_listed",
            timeout=self.settings.boot_timeout,
        )
        return wait_for_condition(
            self.adb.has_running_emulator,
            self.settings.boot_timeout * 1000,
            self.settings.emulator.boot_check_interval * 1000,
            progress,
            logger=self._log,
        )

    def wait_until_booted(self, progress: Callable[[int], None] | None = None) -> bool:
        """Wait for `getprop sys.boot_completed` to read "1"."""
        self._log.info(
            "Waiting for boot completion",
            action="emulator_wait_ready",
            timeout=self.settings.emulator.boot_completed_timeout,
        )
        return wait_for_condition(
            self.adb.boot_completed,
            self.settings.emulator.boot_completed_timeout * 1000,
            self.settings.emulator.boot_check_interval * 1000,
            progress,
            logger=self._log,
        )

    def enable_three_button_navigation(self) -> bool:
        return self.adb.enable_overlay(THREE_BUTTON_NAV_OVERLAY).ok

    def stop(self) -> None:
        """
        Stop the running emulator instance.

        Sends `emu kill` via ADB, then kills any leftover process matching the AVD.
        Safe to call even if the emulator is already stopped.
        """
        self._log.info("Stopping Android emulator", action="emulator_stop", avd=self.avd)
        try:
            self.adb.kill_emulator()
        except (OSError, subprocess.SubprocessError) as e:
            self._log.warning("adb emu kill failed", action="emulator_stop", error=str(e))
        run_cmd(["pkill", "-f", self.process_pattern], silent=True, logger=self._log)
