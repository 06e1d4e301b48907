from __future__ import annotations

from ..context import RunContext
from ..device.avd import AvdTool
from ..errors import ToolError
from ._common import android_paths, log_file_hint


def create_avd(ctx: RunContext) -> None:
    """
    Create (or recreate) the configured AVD.

    Steps: delete an existing AVD of the same name, install the system image,
    create the AVD, append performance settings to its config.ini.

    Raises:
        ToolError: If the system image install or the AVD creation fails.
    """
    settings = ctx.settings
    progress = ctx.progress
    log = ctx.logger
    paths = android_paths(ctx)
    tool = AvdTool(paths.avdmanager, paths.sdkmanager, settings.avd, logger=log)
    name = settings.avd.name

    log.info("Starting AVD creation process", action="avd_create", avd=name)

    progress.start("Checking for existing AVD...")
    if tool.exists():
        progress.info(f"AVD {name} already exists. Deleting and recreating...")
        log.info("Deleting existing AVD", action="avd_delete", avd=name)
        tool.delete()
    else:
        progress.succeed("No existing AVD found")

    progress.start("Installing system image...")
    log.info("Installing system image", action="sdk_install", image=settings.avd.system_image)
    result = tool.install_system_image(settings.java_home_or_default())
    if not result.ok:
        progress.fail("Failed to install system image")
        raise ToolError("Failed to install system image", [tool.sdkmanager], result)
    progress.succeed("System image installed")

    progress.start(f"Creating AVD: {name} ({settings.avd.device_id})...")
    log.info("Creating new AVD", action="avd_create", avd=name)
    result = tool.create()
    if not result.ok:
        progress.fail("Failed to create AVD")
        raise ToolError("Failed to create AVD", [tool.avdmanager, "create", "avd"], result)
    progress.succeed("AVD created successfully")

    progress.start("Configuring AVD for optimal performance...")
    config_file = settings.avd_config_file
    if tool.append_performance_config(config_file):
        log.info("Updated AVD configuration", config=str(config_file))
        progress.succeed("AVD configured for optimal performance")
    else:
        log.warning("AVD config file not found", config=str(config_file))
        progress.warn("Could not find AVD config file, using defaults")

    progress.echo(f"\n✅ AVD {name} created successfully!")
    log_file_hint(ctx)
    progress.echo("\nRun 'emu start' to launch the emulator")
