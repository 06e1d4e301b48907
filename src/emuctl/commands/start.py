from __future__ import annotations

from dataclasses import dataclass

from ..context import RunContext
from ..core.waits import format_time
from ..device.android_emulator import AndroidEmulatorManager
from ..device.avd import AvdTool
from ..errors import BootTimeoutError, PreconditionError
from ..utils.process import ProcessHandle
from ._common import android_paths, log_file_hint, vnc_hint


@dataclass(frozen=True, slots=True)
class StartOutcome:
    """What `emu start` ended up doing."""

    already_running: bool = False
    boot_confirmed: bool = False
    pid: int | None = None


def start_emulator(ctx: RunContext) -> StartOutcome:
    """
    Boot the configured AVD and leave the emulator running after the CLI exits.

    Steps: return early if already running, require the AVD, spawn the
    emulator, wait for it to be listed by adb (fatal on timeout), wait for
    sys.boot_completed (warning on timeout), enable 3-button navigation,
    then release the process from cleanup tracking.

    Raises:
        PreconditionError: If the AVD does not exist.
        BootTimeoutError: If the device is not listed within the boot timeout.
    """
    settings = ctx.settings
    progress = ctx.progress
    log = ctx.logger
    paths = android_paths(ctx)
    manager = AndroidEmulatorManager(settings, paths, logger=log)
    handle: ProcessHandle | None = None

    log.info("Starting emulator launch process", action="emulator_start", avd=settings.avd.name)

    progress.start("Checking if emulator is already running...")
    if manager.is_running():
        progress.info("Emulator is already running")
        progress.echo(f"Connect via VNC ({vnc_hint(ctx)})")
        return StartOutcome(already_running=True)
    progress.succeed("No running emulator found")

    progress.start("Checking if AVD exists...")
    tool = AvdTool(paths.avdmanager, paths.sdkmanager, settings.avd, logger=log)
    if not tool.exists():
        progress.fail(f"AVD {settings.avd.name} not found")
        raise PreconditionError(f"AVD {settings.avd.name} not found", remedy="emu create")
    progress.succeed("AVD found")

    try:
        progress.start(f"Starting Android emulator on display {settings.emulator.display}...")
        handle = manager.launch()
        pid = handle.pid
        ctx.signals.register_process(handle, "emulator")
        progress.succeed(f"Emulator process started (PID: {pid})")

        progress.start(f"Waiting for emulator to boot (timeout: {settings.boot_timeout}s)...")
        listed = manager.wait_until_listed(
            lambda remaining: progress.update(
                f"Waiting for emulator to boot ({format_time(remaining)} remaining)..."
            )
        )
        if not listed:
            progress.fail("Emulator failed to start within timeout")
            log.error(
                "Emulator boot timeout",
                action="emulator_ready_timeout",
                timeout=settings.boot_timeout,
            )
            raise BootTimeoutError(
                f"Emulator was not detected by adb within {settings.boot_timeout}s"
            )

        progress.update("Device detected, checking boot status...")
        log.info("Device detected in ADB, checking boot completion")
        booted = manager.wait_until_booted(
            lambda remaining: progress.update(
                f"Checking boot completion ({format_time(remaining)} remaining)..."
            )
        )
        if booted:
            progress.succeed("Emulator booted successfully!")
            log.info("Boot completed successfully", action="emulator_ready")
        else:
            progress.warn("Boot not fully completed, but device is responsive")
            log.warning("Boot completion check timed out", action="emulator_boot_unconfirmed")

        progress.start("Setting 3-button navigation mode...")
        if manager.enable_three_button_navigation():
            progress.succeed("Navigation mode configured")
        else:
            progress.warn("Could not configure navigation mode")
    except BaseException:
        if handle is not None and handle.owned:
            handle.terminate()
        raise

    # Hand the emulator off before the CLI exits so cleanup never kills it
    ctx.signals.detach_all()

    if booted:
        progress.echo("\n✅ Emulator started successfully!")
    else:
        progress.echo("\n✅ Emulator started (boot completion not confirmed yet)")
    progress.echo(f"🖥️  Connect via VNC to view the emulator ({vnc_hint(ctx)})")
    log_file_hint(ctx)
    progress.echo("\nRun 'emu install-anki' to install AnkiDroid")
    return StartOutcome(boot_confirmed=booted, pid=pid)


def stop_emulator(ctx: RunContext) -> None:
    """
    Stop the emulator: adb `emu kill`, then pkill by command line as a fallback.

    Never fails: the emulator may simply not have been running.
    """
    progress = ctx.progress
    log = ctx.logger
    manager = AndroidEmulatorManager(ctx.settings, android_paths(ctx), logger=log)
    try:
        progress.start("Stopping emulator...")
        manager.stop()
        progress.succeed("Emulator stopped")
        log.info("Emulator stopped successfully", action="emulator_stopped")
    except Exception as e:
        progress.warn("Failed to stop emulator")
        log.warning("Failed to stop emulator", error=str(e), exc_info=True)
        progress.error("\n⚠️  Emulator may not have been running", "normal")
    log_file_hint(ctx)
