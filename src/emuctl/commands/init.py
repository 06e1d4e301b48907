from __future__ import annotations

from collections.abc import Callable

from ..context import RunContext
from ..errors import UserAbort
from ..utils.logging import log_file_path
from ._common import vnc_hint
from .companion import install_companion
from .create import create_avd
from .start import start_emulator

Step = tuple[str, str, Callable[[RunContext], object]]  # (name, banner, action)


def _steps() -> list[Step]:
    return [
        ("Create AVD", "📦 Creating Android Virtual Device...", create_avd),
        ("Start Emulator", "🖥️  Starting Android Emulator...", start_emulator),
        # Force reinstall so init always ends in a clean state
        (
            "Install AnkiDroid",
            "📱 Installing AnkiDroid...",
            lambda ctx: install_companion(ctx, reinstall=True),
        ),
    ]


def initialize_emulator(ctx: RunContext) -> None:
    """
    Run create, start and install in sequence.

    When a step fails the user is asked whether to go on with the remaining
    steps; any answer but 'y' stops with UserAbort. A failure in the last step
    is re-raised.
    """
    progress = ctx.progress
    log = ctx.logger

    ctx.signals.register(lambda: progress.error("\n\n⚠️  Initialization interrupted by user"))
    ctx.signals.register(lambda: log.info("Initialization interrupted by user"))

    progress.echo("\n🚀 Initializing Android Emulator Environment\n")
    log.info("Starting emulator initialization process", action="init")

    steps = _steps()
    total = len(steps)
    for index, (name, banner, action) in enumerate(steps, start=1):
        icon, _, text = banner.partition(" ")
        progress.echo(f"\n{icon} Step {index}/{total}: {text.strip()}")
        try:
            action(ctx)
        except Exception as e:
            progress.stop()
            log.error(f"Failed at step: {name}", error=str(e), exc_info=True)
            progress.error(f"\n❌ Failed at step: {name}")
            progress.error(f"   Error: {e}")
            progress.error(f"\n📝 Check log file for details: {log_file_path()}", "normal")
            if index == total:
                raise
            if not ctx.confirm("\nDo you want to continue with the remaining steps?"):
                log.info("Initialization stopped by user after error")
                raise UserAbort("Initialization stopped by user") from e
            continue
        progress.echo(f"\n✅ Completed: {name} ({index}/{total})")
        log.info(f"Completed step: {name}")

    progress.echo("\n🎉 Emulator initialization complete!\n")
    progress.echo("You can now:")
    progress.echo(f"  • View the emulator via VNC ({vnc_hint(ctx)})")
    progress.echo("  • Build and install your app with appropriate commands")
    progress.echo("  • Stop the emulator with: emu stop")
    progress.echo(f"\n📝 All logs saved to: {log_file_path().parent}")
    log.info("Emulator initialization completed successfully", action="init")
