from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..errors import ConfigError
from .models import Settings


@dataclass(frozen=True, slots=True)
class AndroidPaths:
    """Absolute locations of the Android SDK tools used by the CLI."""

    android_home: Path
    adb: Path
    emulator: Path
    avdmanager: Path
    sdkmanager: Path


def resolve_android_paths(settings: Settings) -> AndroidPaths:
    """
    Derive SDK tool paths from ANDROID_HOME / ANDROID_SDK_ROOT.

    Raises:
        ConfigError: If neither variable is set.
    """
    if not settings.android_home:
        raise ConfigError("ANDROID_HOME or ANDROID_SDK_ROOT environment variable not set")

    home = Path(settings.android_home)
    cmdline_bin = home / "cmdline-tools" / "latest" / "bin"
    return AndroidPaths(
        android_home=home,
        adb=home / "platform-tools" / "adb",
        emulator=home / "emulator" / "emulator",
        avdmanager=cmdline_bin / "avdmanager",
        sdkmanager=cmdline_bin / "sdkmanager",
    )
