from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .utils.cli import ProcessResult


class EmuError(Exception):
    """Base class for every error raised by emulator operations."""

    remedy: str | None = None


class ConfigError(EmuError):
    """Configuration is missing or invalid (e.g. ANDROID_HOME is not set)."""


class PreconditionError(EmuError):
    """
    A required state does not hold (no running emulator, AVD missing, package absent).

    Args:
        message (str): What is wrong.
        remedy (str | None): Command the user should run to fix it.
    """

    def __init__(self, message: str, remedy: str | None = None) -> None:
        super().__init__(message)
        self.remedy = remedy


class ToolError(EmuError):
    """An external tool exited with a non-zero code where success was required."""

    def __init__(
        self, message: str, command: Sequence[str] = (), result: ProcessResult | None = None
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.result = result


class BootTimeoutError(EmuError):
    """The emulator did not show up in the device list within the boot timeout."""


class DownloadError(EmuError):
    """The companion app package could not be downloaded."""


class UserAbort(EmuError):
    """The user declined an interactive prompt."""


class ProcessOwnershipError(EmuError):
    """A process handle was terminated or released more than once."""
