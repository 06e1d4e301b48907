from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from ..context import RunContext
from ..errors import ToolError
from ._common import adb_client, require_emulator

DEVICE_SCREENSHOT_PATH = "/sdcard/screenshot.png"


def default_screenshot_name(now: datetime | None = None) -> str:
    """screenshot-2025-01-31T12-30-45-123Z.png (UTC ISO time, ':' and '.' replaced by '-')."""
    now = now or datetime.now(timezone.utc)
    stamp = (
        now.isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
        .replace(":", "-")
        .replace(".", "-")
    )
    return f"screenshot-{stamp}.png"


def take_screenshot(ctx: RunContext, filename: str | None = None) -> Path:
    """
    Capture the emulator screen into ./screenshots/ and print the local path.

    Raises:
        PreconditionError: If no emulator is running.
        ToolError: If the capture or the pull fails.
    """
    adb = adb_client(ctx)
    require_emulator(ctx, adb)

    screenshots_dir = Path.cwd() / "screenshots"
    if not screenshots_dir.exists():
        screenshots_dir.mkdir(parents=True, exist_ok=True)
        ctx.logger.info("Created screenshots directory", path=str(screenshots_dir))

    output = screenshots_dir / (filename or default_screenshot_name())

    captured = adb.screencap(DEVICE_SCREENSHOT_PATH)
    if not captured.ok:
        raise ToolError("Failed to capture screenshot", ["screencap"], captured)
    pulled = adb.pull(DEVICE_SCREENSHOT_PATH, output)
    if not pulled.ok:
        raise ToolError("Failed to pull screenshot from device", ["pull"], pulled)
    adb.shell("rm", DEVICE_SCREENSHOT_PATH)

    ctx.logger.info("Screenshot saved", path=str(output))
    # The path is the command's output, so it is printed even in silent mode
    ctx.progress.echo(str(output), "always")
    return output
