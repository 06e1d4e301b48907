from __future__ import annotations

from pathlib import Path

from ..context import RunContext
from ..device.adb import AdbClient
from ..errors import PreconditionError, ToolError, UserAbort
from ..utils.download import download_file
from ._common import adb_client, log_file_hint, require_emulator, vnc_hint
from .host_app import grant_host_permission


def ensure_apk(ctx: RunContext) -> Path:
    """
    Return the cached companion APK, downloading it first if it is not cached.

    Raises:
        DownloadError: If the download fails.
    """
    companion = ctx.settings.companion
    cache_dir = ctx.settings.apk_cache_dir
    cache_dir.mkdir(parents=True, exist_ok=True)
    apk = cache_dir / companion.apk_filename()

    if apk.exists():
        ctx.progress.info(f"Using existing AnkiDroid APK v{companion.version}")
        ctx.logger.info("APK already cached", apk=str(apk))
        return apk

    url = companion.apk_url()
    ctx.progress.start(f"Downloading AnkiDroid v{companion.version} from GitHub...")
    ctx.logger.info("Downloading APK", url=url)
    try:
        download_file(url, apk)
    except Exception:
        ctx.progress.fail("Failed to download AnkiDroid APK")
        raise
    ctx.progress.succeed(f"Downloaded AnkiDroid v{companion.version}")
    return apk


def grant_companion_permissions(ctx: RunContext, adb: AdbClient) -> None:
    """Storage permissions plus the MANAGE_EXTERNAL_STORAGE app-op for the companion app."""
    companion = ctx.settings.companion
    ctx.progress.start("Granting file management permissions to AnkiDroid...")
    ctx.logger.info("Granting file management permissions", package=companion.package)
    for op in companion.app_ops:
        adb.set_app_op(companion.package, op, "allow")
    for permission in companion.runtime_permissions:
        adb.grant(companion.package, permission)
    ctx.progress.succeed("File management permissions granted")


def _uninstall(ctx: RunContext, adb: AdbClient) -> None:
    package = ctx.settings.companion.package
    ctx.progress.start("Uninstalling existing AnkiDroid...")
    ctx.logger.info("Uninstalling existing AnkiDroid", package=package)
    adb.uninstall(package)
    ctx.progress.succeed("Existing AnkiDroid uninstalled")


def install_companion(ctx: RunContext, reinstall: bool = False) -> None:
    """
    Install the companion app on the running emulator and launch it.

    If it is already installed, ask before reinstalling unless *reinstall* is set.

    Raises:
        PreconditionError: If no emulator is running.
        UserAbort: If the user declines to reinstall.
        DownloadError: If the APK cannot be downloaded.
        ToolError: If `adb install` fails.
    """
    companion = ctx.settings.companion
    progress = ctx.progress
    log = ctx.logger
    adb = adb_client(ctx)

    log.info("Starting AnkiDroid installation process", action="companion_install")
    require_emulator(ctx, adb)

    progress.start("Checking if AnkiDroid is already installed...")
    if adb.is_installed(companion.package):
        progress.info("AnkiDroid is already installed")
        if not reinstall and not ctx.confirm("Do you want to reinstall?"):
            log.info("User chose not to reinstall")
            raise UserAbort("Kept the existing AnkiDroid installation")
        _uninstall(ctx, adb)
    else:
        progress.succeed("AnkiDroid not currently installed")

    apk = ensure_apk(ctx)

    progress.start("Installing AnkiDroid on emulator...")
    log.info("Installing APK on device", apk=str(apk))
    result = adb.install(apk)
    if not result.ok:
        progress.fail("Failed to install AnkiDroid APK")
        raise ToolError("Failed to install AnkiDroid APK", [adb.adb, "install", str(apk)], result)
    progress.succeed("AnkiDroid installed successfully")

    grant_companion_permissions(ctx, adb)

    progress.start("Launching AnkiDroid...")
    log.info("Launching AnkiDroid application")
    adb.launch(companion.package)
    progress.succeed("AnkiDroid launched")

    progress.echo("\n✅ AnkiDroid installed and running!")
    progress.echo(f"🖥️  View it through VNC ({vnc_hint(ctx)})", "verbose")
    log_file_hint(ctx)


def uninstall_companion(ctx: RunContext) -> None:
    """
    Remove the companion app. Not being installed is reported, not an error.

    Raises:
        PreconditionError: If no emulator is running.
        ToolError: If `adb uninstall` fails.
    """
    package = ctx.settings.companion.package
    progress = ctx.progress
    adb = adb_client(ctx)

    ctx.logger.info("Starting AnkiDroid uninstallation", action="companion_uninstall")
    require_emulator(ctx, adb)

    progress.start("Checking if AnkiDroid is installed...")
    if not adb.is_installed(package):
        progress.info("AnkiDroid is not installed")
        return
    progress.succeed("AnkiDroid found")

    progress.start("Uninstalling AnkiDroid...")
    result = adb.uninstall(package)
    if not result.ok:
        progress.fail("Failed to uninstall AnkiDroid")
        raise ToolError("Failed to uninstall AnkiDroid", [adb.adb, "uninstall", package], result)
    progress.succeed("AnkiDroid uninstalled successfully")
    progress.echo("\n✅ AnkiDroid has been uninstalled")
    log_file_hint(ctx)


def grant_companion_api_permission(ctx: RunContext) -> None:
    """
    Grant the companion database permission to the host app, after checking both are installed.

    Raises:
        PreconditionError: If no emulator runs, or either app is missing.
    """
    settings = ctx.settings
    progress = ctx.progress
    adb = adb_client(ctx)

    require_emulator(ctx, adb)
    packages = adb.list_packages()

    progress.start("Checking if AnkiDroid is installed...")
    if settings.companion.package not in packages:
        progress.fail("AnkiDroid is not installed")
        raise PreconditionError("AnkiDroid is not installed", remedy="emu anki install")
    progress.succeed("AnkiDroid is installed")

    progress.start("Checking if the host app is installed...")
    if settings.host_app.package not in packages:
        progress.fail("Host app is not installed")
        raise PreconditionError(
            f"{settings.host_app.package} is not installed",
            remedy="build and install the host app first",
        )
    progress.succeed("Host app is installed")

    grant_host_permission(ctx, adb, check_device=False)


def reset_companion(ctx: RunContext) -> None:
    """
    Wipe and reinstall the companion app, then re-grant the host app permission.

    Uninstall and data directory removal are best effort; the reinstall is not.
    """
    companion = ctx.settings.companion
    progress = ctx.progress
    log = ctx.logger
    adb = adb_client(ctx)

    log.info("Resetting AnkiDroid", action="companion_reset")
    require_emulator(ctx, adb)

    progress.start("Uninstalling AnkiDroid...")
    result = adb.uninstall(companion.package)
    if result.ok:
        progress.succeed("AnkiDroid uninstalled")
    else:
        log.warning("Uninstall failed, continuing", returncode=result.returncode)
        progress.info("AnkiDroid was not installed")

    progress.start("Clearing AnkiDroid data...")
    for path in companion.data_dirs:
        cleared = adb.remove_path(path)
        if cleared.ok:
            log.debug("Cleared data directory", path=path)
        else:
            log.warning("Could not clear data directory", path=path, stderr=cleared.stderr.strip())
    progress.succeed("AnkiDroid data cleared")

    install_companion(ctx, reinstall=True)

    try:
        grant_host_permission(ctx, adb, check_device=False)
    except ToolError as e:
        # The host app may not be installed yet
        log.warning("Could not grant host app permission", error=str(e))
        progress.warn(f"Host app permission not granted: {e}")
