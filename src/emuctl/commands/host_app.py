from __future__ import annotations

from ..context import RunContext
from ..device.adb import AdbClient
from ..errors import ToolError
from ._common import adb_client, require_emulator


def grant_host_permission(
    ctx: RunContext, adb: AdbClient | None = None, *, check_device: bool = True
) -> None:
    """
    Grant the companion app's database permission to the host app.

    Raises:
        PreconditionError: If no emulator is running (when *check_device*).
        ToolError: If `pm grant` fails.
    """
    host = ctx.settings.host_app
    adb = adb or adb_client(ctx)
    if check_device:
        require_emulator(ctx, adb)

    ctx.progress.start("Granting AnkiDroid API permission to the host app...")
    ctx.logger.info("Granting permission", permission=host.permission, package=host.package)
    result = adb.grant(host.package, host.permission)
    if not result.ok:
        ctx.progress.fail("Failed to grant permission")
        raise ToolError(
            f"Failed to grant {host.permission} to {host.package}",
            [adb.adb, "shell", "pm", "grant", host.package, host.permission],
            result,
        )
    ctx.progress.succeed("Permission granted successfully")
    ctx.progress.echo(f"Granted {host.permission} → {host.package}")
