from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from ..config.models import AvdSettings
from ..utils.cli import ProcessResult, run_cmd
from ..utils.logging import get_logger


def parse_avd_names(output: str) -> set[str]:
    """Extract AVD names from `avdmanager list avd` ("    Name: <avd>" lines)."""
    names: set[str] = set()
    for line in output.splitlines():
        key, sep, value = line.strip().partition(":")
        if sep and key == "Name" and value.strip():
            names.add(value.strip())
    return names


def performance_config(avd: AvdSettings) -> str:
    """Lines appended to the AVD's config.ini after creation."""
    return (
        "\n"
        f"hw.ramSize={avd.ram_size}\n"
        f"hw.gpu.enabled={'yes' if avd.gpu_enabled else 'no'}\n"
        f"hw.gpu.mode={avd.gpu_mode}\n"
        "hw.keyboard=yes\n"
        "hw.mainKeys=yes\n"
        "showDeviceFrame=no\n"
    )


class AvdTool:
    """Wrapper over sdkmanager/avdmanager for one AVD definition."""

    def __init__(
        self,
        avdmanager: str | os.PathLike[str],
        sdkmanager: str | os.PathLike[str],
        avd: AvdSettings,
        *,
        logger: Any | None = None,
    ) -> None:
        self.avdmanager = os.fspath(avdmanager)
        self.sdkmanager = os.fspath(sdkmanager)
        self.avd = avd
        self._log = logger or get_logger(__name__)

    def list_avds(self) -> set[str]:
        return parse_avd_names(
            run_cmd([self.avdmanager, "list", "avd"], silent=True, logger=self._log).stdout
        )

    def exists(self) -> bool:
        return self.avd.name in self.list_avds()

    def delete(self) -> ProcessResult:
        return run_cmd(
            [self.avdmanager, "delete", "avd", "-n", self.avd.name], silent=True, logger=self._log
        )

    def install_system_image(self, java_home: str) -> ProcessResult:
        env = {**os.environ, "JAVA_HOME": java_home}
        return run_cmd([self.sdkmanager, self.avd.system_image], env=env, logger=self._log)

    def create(self) -> ProcessResult:
        # avdmanager asks whether to create a custom hardware profile
        return run_cmd(
            [
                self.avdmanager,
                "create",
                "avd",
                "-n",
                self.avd.name,
                "-k",
                self.avd.system_image,
                "-c",
                self.avd.sdcard_size,
                "--force",
            ],
            input="no\n",
            logger=self._log,
        )

    def append_performance_config(self, config_file: Path) -> bool:
        """
        Append RAM/GPU/keyboard tuning to config.ini.

        Returns:
            bool: False if the config file does not exist.
        """
        if not config_file.exists():
            return False
        with config_file.open("a", encoding="utf-8") as f:
            f.write(performance_config(self.avd))
        return True
