"""
Legacy Configuration Migration

Earlier releases kept a single model configuration for the primary
character in `.model_config.json`. The first time the slots file is
missing, that record is folded into the primary slot. The legacy file is
only ever read here; nothing writes to it anymore.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from avatarslots.constants import (
    FIELD_FOLDER,
    FIELD_MODEL_FILE,
    FIELD_TEXTURE_FOLDER,
    LEGACY_FIELD_URL,
    PRIMARY_SLOT_ID,
)
from avatarslots.log_utils import logger
from avatarslots.paths import Pathish

from .models import SlotConfig, apply_url_defaults, merge_slots


@dataclass
class LegacyModelConfig:
    """The single-slot record stored by earlier releases."""

    url: str
    folder: str
    model_file: str
    texture_folder: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LegacyModelConfig":
        """
        Parse the legacy JSON object.

        Raises:
            ValueError: If a required field is missing or not a string.
        """
        values = {}
        for key in (LEGACY_FIELD_URL, FIELD_FOLDER, FIELD_MODEL_FILE):
            value = data.get(key)
            if not isinstance(value, str):
                raise ValueError(f"legacy model config missing {key!r}")
            values[key] = value
        texture_folder = data.get(FIELD_TEXTURE_FOLDER)
        return cls(
            url=values[LEGACY_FIELD_URL],
            folder=values[FIELD_FOLDER],
            model_file=values[FIELD_MODEL_FILE],
            texture_folder=texture_folder if isinstance(texture_folder, str) else None,
        )


def read_legacy_config(legacy_path: Pathish) -> Optional[LegacyModelConfig]:
    """
    Best-effort read of the legacy single-slot configuration.

    Returns:
        Optional[LegacyModelConfig]: The parsed record, or None when the file is
        missing, unreadable or malformed. Failures are logged, never raised.
    """
    path = Path(legacy_path)
    if not path.exists():
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        return LegacyModelConfig.from_dict(data)
    except (OSError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning(f"Ignoring unreadable legacy model config {path}: {e}")
        return None


def migrate_or_default_slots(legacy_path: Optional[Pathish]) -> List[SlotConfig]:
    """
    Build the initial slot list, folding in the legacy record if there is one.

    Returns:
        List[SlotConfig]: One record per fixed slot, URL defaults applied.
    """
    slots = merge_slots([])
    legacy = read_legacy_config(legacy_path) if legacy_path is not None else None
    if legacy is not None:
        primary = next(s for s in slots if s.slot_id == PRIMARY_SLOT_ID)
        primary.bundle_url = legacy.url
        primary.enabled = True
        primary.asset_folder = legacy.folder
        primary.descriptor_file = legacy.model_file
        primary.aux_asset_folder = legacy.texture_folder
        logger.info(f"Migrated legacy model config from {legacy_path}")
    else:
        logger.debug("No legacy model config to migrate; using defaults")

    apply_url_defaults(slots)
    return slots
