from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NoReturn

import typer

from ..commands import (
    create_avd,
    grant_companion_api_permission,
    grant_host_permission,
    initialize_emulator,
    install_companion,
    reset_companion,
    start_emulator,
    stop_emulator,
    take_screenshot,
    uninstall_companion,
)
from ..config.loader import load_settings
from ..context import LogLevel, RunContext
from ..core.signals import SignalCoordinator
from ..errors import EmuError, UserAbort
from ..utils.logging import bind_context, get_logger, log_file_path, setup_logging
from ..utils.progress import make_progress
from ..utils.prompt import make_confirm

# Create a CLI application using Typer
app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Android emulator management CLI for AnkiDroid plugin development.",
)
anki_app = typer.Typer(no_args_is_help=True, help="Manage AnkiDroid installation and permissions.")
app.add_typer(anki_app, name="anki")


@dataclass(frozen=True, slots=True)
class GlobalOptions:
    verbose: bool
    silent: bool
    assume_yes: bool
    config: str | None


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    silent: bool = typer.Option(
        False, "--silent", "-s", help="Suppress all output except errors"
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Answer yes to every prompt (non-interactive)"
    ),
    config: str = typer.Option(None, "--config", help="Path to the YAML configuration file"),
) -> None:
    """Global options shared by every command."""
    ctx.obj = GlobalOptions(verbose=verbose, silent=silent, assume_yes=yes, config=config)


def _build_context(typer_ctx: typer.Context, command: str) -> RunContext:
    """
    Build the RunContext for *command*: settings, logging, progress, prompts, signals.

    Everything that depends on the verbosity flags is decided here, once.
    """
    opts: GlobalOptions = typer_ctx.find_root().obj or GlobalOptions(False, False, False, None)
    level = LogLevel.from_flags(verbose=opts.verbose, silent=opts.silent)
    settings = load_settings(opts.config)
    setup_logging(level, settings.logs_dir)
    bind_context(command=command, avd=settings.avd.name)
    progress = make_progress(level)
    return RunContext(
        settings=settings,
        log_level=level,
        logger=get_logger(f"emuctl.{command}"),
        progress=progress,
        confirm=make_confirm(opts.assume_yes),
        signals=SignalCoordinator(echo=lambda msg: progress.error(msg, "normal")),
    )


def _startup_failure(e: EmuError) -> NoReturn:
    typer.secho(f"❌ Error: {e}", err=True, fg=typer.colors.RED)
    raise typer.Exit(1) from e


def _execute(
    typer_ctx: typer.Context,
    command: str,
    operation: Callable[[RunContext], Any],
    banner: str | None = None,
    *,
    abort_code: int = 0,
) -> None:
    """
    Run *operation* and translate its outcome into an exit code.

    The single top-level catch for every command: errors are logged with full
    detail to the unified log, summarised on the console, and exit with 1.
    """
    try:
        run_ctx = _build_context(typer_ctx, command)
    except EmuError as e:
        _startup_failure(e)

    progress = run_ctx.progress
    log = run_ctx.logger
    if banner:
        progress.echo(banner)

    try:
        operation(run_ctx)
    except UserAbort as e:
        progress.stop()
        log.info("Aborted by user", reason=str(e))
        progress.echo(f"\n⚠️  {e}")
        raise typer.Exit(abort_code) from e
    except Exception as e:
        progress.stop()
        log.error(f"{command} failed", error=str(e), exc_info=True)
        progress.error(f"\n❌ Error: {e}")
        remedy = getattr(e, "remedy", None)
        if remedy:
            progress.error(f"\nRun '{remedy}' first" if remedy.startswith("emu ") else f"\n{remedy}")
        progress.error(f"📝 Check log file for details: {log_file_path()}", "normal")
        raise typer.Exit(1) from e
    finally:
        progress.stop()
        run_ctx.signals.restore()


@app.command()
def init(ctx: typer.Context) -> None:
    """Initialize complete emulator environment (create, start, install AnkiDroid)."""
    _execute(
        ctx,
        "init",
        initialize_emulator,
        "Initializing Android emulator environment...",
        abort_code=1,
    )


@app.command()
def create(ctx: typer.Context) -> None:
    """Create the configured AVD (recreating it if it exists)."""
    _execute(ctx, "create", create_avd, "Creating Android Virtual Device...")


@app.command()
def start(ctx: typer.Context) -> None:
    """Start the Android emulator and leave it running."""
    _execute(ctx, "start", start_emulator, "Starting Android emulator...")


@app.command()
def stop(ctx: typer.Context) -> None:
    """Stop the running Android emulator."""
    _execute(ctx, "stop", stop_emulator, "Stopping Android emulator...")


@app.command("install-anki")
def install_anki(
    ctx: typer.Context,
    reinstall: bool = typer.Option(
        False, "--reinstall", "-r", help="Force reinstall even if already installed"
    ),
) -> None:
    """Install AnkiDroid on the running emulator."""
    _execute(
        ctx,
        "install-anki",
        lambda run_ctx: install_companion(run_ctx, reinstall=reinstall),
        "Installing AnkiDroid...",
    )


@app.command()
def logs(ctx: typer.Context) -> None:
    """Show the unified log file path."""
    opts: GlobalOptions | None = ctx.find_root().obj
    try:
        settings = load_settings(opts.config if opts else None)
    except EmuError as e:
        _startup_failure(e)
    setup_logging(LogLevel.SILENT, settings.logs_dir)
    typer.echo(str(log_file_path()))


@app.command()
def screenshot(
    ctx: typer.Context,
    filename: str = typer.Argument(
        None, help="Optional filename for the screenshot (default: timestamped)"
    ),
) -> None:
    """Take a screenshot of the running emulator."""
    _execute(ctx, "screenshot", lambda run_ctx: take_screenshot(run_ctx, filename))


@app.command("app-permissions")
def app_permissions(ctx: typer.Context) -> None:
    """Grant AnkiDroid database permissions to the host app."""
    _execute(ctx, "app-permissions", grant_host_permission)


@anki_app.command("install")
def anki_install(ctx: typer.Context) -> None:
    """Install AnkiDroid with all required permissions (always reinstalls)."""
    _execute(
        ctx,
        "anki-install",
        lambda run_ctx: install_companion(run_ctx, reinstall=True),
        "Installing AnkiDroid with auto-permissions...",
    )


@anki_app.command("uninstall")
def anki_uninstall(ctx: typer.Context) -> None:
    """Uninstall AnkiDroid from the emulator."""
    _execute(ctx, "anki-uninstall", uninstall_companion, "Uninstalling AnkiDroid...")


@anki_app.command("permissions")
def anki_permissions(ctx: typer.Context) -> None:
    """Grant AnkiDroid API permissions to the host app."""
    _execute(
        ctx,
        "anki-permissions",
        grant_companion_api_permission,
        "Granting AnkiDroid API permissions to the host app...",
    )


@anki_app.command("reset")
def anki_reset(ctx: typer.Context) -> None:
    """Uninstall AnkiDroid, wipe its data, reinstall it and re-grant host permissions."""
    _execute(ctx, "anki-reset", reset_companion, "Resetting AnkiDroid...")


if __name__ == "__main__":
    app()
