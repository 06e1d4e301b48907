from __future__ import annotations

import os
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import Settings

# Default path to the configuration file.
# Can be overridden with the "EMU_CONFIG" environment variable.
DEFAULT_CONFIG: str = os.getenv("EMU_CONFIG", "emu.yaml")


def load_settings(path: str | None = None) -> Settings:
    """
    Load device settings from an optional YAML configuration file.

    Args:
        path (str | None): Optional path to the configuration file.
                           If not provided, DEFAULT_CONFIG is used.

    Returns:
        Settings: Loaded settings. A missing or empty file yields the defaults,
                  still overridden by environment variables.

    Raises:
        ConfigError: If the file exists but is not a YAML mapping, or a value
                     from the file or the environment fails validation.
    """
    file_path: str = path or DEFAULT_CONFIG
    data: dict[str, Any] = {}

    if os.path.exists(file_path):
        with open(file_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {file_path}: {e}") from e
        if isinstance(loaded, dict):
            data = loaded
        elif loaded is not None:
            raise ConfigError(f"{file_path} must contain a mapping, got {type(loaded).__name__}")

    try:
        return Settings(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
