from __future__ import annotations

from ..config.sdk import AndroidPaths, resolve_android_paths
from ..context import RunContext
from ..device.adb import AdbClient
from ..errors import PreconditionError
from ..utils.logging import log_file_path


def android_paths(ctx: RunContext) -> AndroidPaths:
    return resolve_android_paths(ctx.settings)


def adb_client(ctx: RunContext) -> AdbClient:
    return AdbClient(android_paths(ctx).adb, logger=ctx.logger)


def require_emulator(ctx: RunContext, adb: AdbClient) -> None:
    """Fail with a remedy unless an emulator is online."""
    ctx.progress.start("Checking if emulator is running...")
    if not adb.has_running_emulator():
        ctx.progress.fail("No emulator found")
        raise PreconditionError("No running emulator found", remedy="emu start")
    ctx.progress.succeed("Emulator is running")


def log_file_hint(ctx: RunContext) -> None:
    ctx.progress.echo(f"📝 Log file: {log_file_path()}", "verbose")


def vnc_hint(ctx: RunContext) -> str:
    emu = ctx.settings.emulator
    return f"display {emu.display}, port {emu.vnc_port}"
