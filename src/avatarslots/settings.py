"""
YAML settings for avatarslots.

The settings file is optional; when present it may override the data
directory, the download timeout and logging behaviour. Slot configuration
itself never lives here; it belongs to the slots file managed by the store.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from avatarslots.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    SETTING_DATA_DIR,
    SETTING_LOG_LEVEL,
    SETTING_LOG_TO_FILE,
    SETTING_REQUEST_TIMEOUT,
)
from avatarslots.exceptions import SettingsError
from avatarslots.log_utils import logger
from avatarslots.paths import AppPaths, Pathish, settings_file_path


@dataclass
class Settings:
    """Resolved application settings."""

    data_dir: Optional[Path] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: Optional[str] = None
    log_to_file: bool = False

    @property
    def paths(self) -> AppPaths:
        return AppPaths.from_data_dir(self.data_dir)


def _coerce_timeout(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid %s value %r; using default of %s",
            SETTING_REQUEST_TIMEOUT,
            raw,
            DEFAULT_REQUEST_TIMEOUT,
        )
        return DEFAULT_REQUEST_TIMEOUT
    if value <= 0:
        logger.warning(
            "%s must be > 0; using default of %s",
            SETTING_REQUEST_TIMEOUT,
            DEFAULT_REQUEST_TIMEOUT,
        )
        return DEFAULT_REQUEST_TIMEOUT
    return value


def _coerce_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return bool(raw)


def settings_from_mapping(data: Dict[str, Any]) -> Settings:
    """
    Build Settings from a parsed YAML mapping.

    Unknown keys are ignored. Invalid values fall back to their defaults with a
    warning rather than failing the load.
    """
    settings = Settings()

    data_dir = data.get(SETTING_DATA_DIR)
    if isinstance(data_dir, str) and data_dir.strip():
        settings.data_dir = Path(os.path.expanduser(data_dir.strip()))
    elif data_dir is not None:
        logger.warning("Ignoring invalid %s value %r", SETTING_DATA_DIR, data_dir)

    if SETTING_REQUEST_TIMEOUT in data:
        settings.request_timeout = _coerce_timeout(data[SETTING_REQUEST_TIMEOUT])

    log_level = data.get(SETTING_LOG_LEVEL)
    if isinstance(log_level, str) and log_level.strip():
        settings.log_level = log_level.strip().upper()

    if SETTING_LOG_TO_FILE in data:
        settings.log_to_file = _coerce_bool(data[SETTING_LOG_TO_FILE])

    return settings


def load_settings(path: Optional[Pathish] = None) -> Settings:
    """
    Load settings from the YAML settings file.

    Parameters:
        path: Explicit settings file; defaults to `config.yaml` in the
            platformdirs config directory.

    Returns:
        Settings: Parsed settings, or defaults when the file does not exist.

    Raises:
        SettingsError: If the file exists but is not valid YAML or is not a mapping.
    """
    settings_path = Path(path) if path is not None else settings_file_path()
    if not settings_path.exists():
        logger.debug(f"No settings file at {settings_path}; using defaults")
        return Settings()

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SettingsError(
            f"Failed to parse settings file {settings_path}", details=str(e)
        ) from e
    except OSError as e:
        raise SettingsError(
            f"Failed to read settings file {settings_path}", details=str(e)
        ) from e

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise SettingsError(
            f"Settings file {settings_path} must contain a mapping",
            details=f"got {type(data).__name__}",
        )

    return settings_from_mapping(data)
