from .companion import (
    grant_companion_api_permission,
    install_companion,
    reset_companion,
    uninstall_companion,
)
from .create import create_avd
from .host_app import grant_host_permission
from .init import initialize_emulator
from .screenshot import take_screenshot
from .start import StartOutcome, start_emulator, stop_emulator

__all__ = [
    "StartOutcome",
    "create_avd",
    "grant_companion_api_permission",
    "grant_host_permission",
    "initialize_emulator",
    "install_companion",
    "reset_companion",
    "start_emulator",
    "stop_emulator",
    "take_screenshot",
    "uninstall_companion",
]
