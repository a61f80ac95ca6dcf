"""
Path resolution for avatarslots.

Every on-disk location used by the slot store and the provisioning layer is
derived from a single data directory, defaulting to the platformdirs
per-user data directory.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import platformdirs

from avatarslots.constants import (
    APP_NAME,
    LEGACY_MODEL_CONFIG_FILE_NAME,
    MODELS_DIR_NAME,
    SETTINGS_FILE_NAME,
    SLOT_IDS,
    SLOTS_FILE_NAME,
)
from avatarslots.exceptions import InvalidSlotError

Pathish = Union[str, Path]


def default_data_dir() -> Path:
    """Return the platformdirs per-user data directory for the application."""
    return Path(platformdirs.user_data_dir(APP_NAME))


def default_config_dir() -> Path:
    """Return the platformdirs per-user config directory for the application."""
    return Path(platformdirs.user_config_dir(APP_NAME))


def default_log_dir() -> Path:
    return Path(platformdirs.user_log_dir(APP_NAME))


def settings_file_path(config_dir: Optional[Pathish] = None) -> Path:
    base = Path(config_dir) if config_dir is not None else default_config_dir()
    return base / SETTINGS_FILE_NAME


def is_valid_slot_id(slot_id: str) -> bool:
    return slot_id in SLOT_IDS


def require_slot_id(slot_id: str) -> str:
    """
    Return `slot_id` unchanged if it belongs to the fixed enumeration.

    Raises:
        InvalidSlotError: If the identifier is unknown.
    """
    if not is_valid_slot_id(slot_id):
        raise InvalidSlotError(slot_id)
    return slot_id


@dataclass(frozen=True)
class AppPaths:
    """Filesystem layout rooted at one data directory."""

    data_dir: Path

    @classmethod
    def from_data_dir(cls, data_dir: Optional[Pathish] = None) -> "AppPaths":
        """Build the layout for `data_dir`, or the platformdirs default when omitted."""
        if data_dir is None:
            return cls(default_data_dir())
        return cls(Path(data_dir).expanduser())

    @property
    def slots_file(self) -> Path:
        return self.data_dir / SLOTS_FILE_NAME

    @property
    def legacy_model_config_file(self) -> Path:
        return self.data_dir / LEGACY_MODEL_CONFIG_FILE_NAME

    @property
    def models_dir(self) -> Path:
        return self.data_dir / MODELS_DIR_NAME

    def slot_root(self, slot_id: str) -> Path:
        """
        Return the private asset root for a slot.

        Raises:
            InvalidSlotError: If the identifier is unknown.
        """
        return self.models_dir / require_slot_id(slot_id)
