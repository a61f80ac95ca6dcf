"""
Slot configuration records and their on-disk representation.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from avatarslots.constants import (
    FIELD_ENABLED,
    FIELD_FOLDER,
    FIELD_MODEL_FILE,
    FIELD_MODEL_URL,
    FIELD_SLOT_ID,
    FIELD_TEXTURE_FOLDER,
    PRIMARY_SLOT_ID,
    SLOT_DEFAULT_URLS,
    SLOT_IDS,
)
from avatarslots.log_utils import logger


def slot_default_url(slot_id: str) -> str:
    """Return the built-in bundle URL for `slot_id` (the primary's for unknown ids)."""
    return SLOT_DEFAULT_URLS.get(slot_id, SLOT_DEFAULT_URLS[PRIMARY_SLOT_ID])


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass
class SlotConfig:
    """Persisted configuration of one character slot."""

    slot_id: str
    """One of the fixed slot identifiers"""

    bundle_url: str = ""
    """Bundle archive URL; empty means unconfigured"""

    enabled: bool = False
    """Whether the slot takes part in cycling"""

    asset_folder: Optional[str] = None
    """Normalized model folder relative to the slot's private root"""

    descriptor_file: Optional[str] = None
    """Descriptor file name inside ``asset_folder``"""

    aux_asset_folder: Optional[str] = None
    """Texture folder name inside ``asset_folder``"""

    @classmethod
    def default_for(cls, slot_id: str) -> "SlotConfig":
        """
        Build the default record for `slot_id`.

        Defaults are disabled except for the primary slot, which is enabled with
        its built-in URL. Asset fields stay empty until provisioning succeeds.
        """
        if slot_id == PRIMARY_SLOT_ID:
            return cls(
                slot_id=slot_id, bundle_url=slot_default_url(slot_id), enabled=True
            )
        return cls(slot_id=slot_id)

    @property
    def has_url(self) -> bool:
        return bool(self.bundle_url.strip())

    @property
    def is_provisioned(self) -> bool:
        return self.asset_folder is not None and self.descriptor_file is not None

    def clear_assets(self) -> None:
        self.asset_folder = None
        self.descriptor_file = None
        self.aux_asset_folder = None

    def copy(self) -> "SlotConfig":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            FIELD_SLOT_ID: self.slot_id,
            FIELD_MODEL_URL: self.bundle_url,
            FIELD_ENABLED: self.enabled,
            FIELD_FOLDER: self.asset_folder,
            FIELD_MODEL_FILE: self.descriptor_file,
            FIELD_TEXTURE_FOLDER: self.aux_asset_folder,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlotConfig":
        """
        Parse one slots-file entry, tolerating missing optional fields.

        Raises:
            ValueError: If the entry has no string ``slot_id``.
        """
        slot_id = data.get(FIELD_SLOT_ID)
        if not isinstance(slot_id, str):
            raise ValueError(f"slot entry without a valid {FIELD_SLOT_ID}: {data!r}")

        raw_url = data.get(FIELD_MODEL_URL)
        bundle_url = raw_url if isinstance(raw_url, str) else ""

        has_url = bool(bundle_url.strip())
        raw_enabled = data.get(FIELD_ENABLED)
        folder = _optional_str(data.get(FIELD_FOLDER))
        model_file = _optional_str(data.get(FIELD_MODEL_FILE))
        if (folder is None) != (model_file is None):
            logger.debug(f"Dropping half-set asset fields for {slot_id}")
            folder = model_file = None

        return cls(
            slot_id=slot_id,
            bundle_url=bundle_url,
            enabled=bool(raw_enabled) if raw_enabled is not None else has_url,
            asset_folder=folder,
            descriptor_file=model_file,
            aux_asset_folder=_optional_str(data.get(FIELD_TEXTURE_FOLDER))
            if folder is not None
            else None,
        )


def merge_slots(slots: Iterable[SlotConfig]) -> List[SlotConfig]:
    """
    Return exactly one record per fixed slot identifier, in fixed order.

    The first record for each identifier wins; missing identifiers get their
    defaults and unknown identifiers are dropped.
    """
    by_id: Dict[str, SlotConfig] = {}
    for slot in slots:
        if slot.slot_id not in SLOT_IDS:
            logger.debug(f"Ignoring unknown slot id {slot.slot_id!r}")
            continue
        by_id.setdefault(slot.slot_id, slot)

    return [
        by_id.get(slot_id) or SlotConfig.default_for(slot_id) for slot_id in SLOT_IDS
    ]


def apply_url_defaults(slots: Iterable[SlotConfig]) -> None:
    """
    Backfill blank URLs in place.

    A slot with a blank URL gets its built-in URL and is enabled, so an
    unconfigured slot behaves as if it were configured with its default. The
    primary slot is always enabled. A slot that keeps an explicit URL keeps
    its persisted enabled flag.
    """
    for slot in slots:
        if not slot.has_url:
            slot.bundle_url = slot_default_url(slot.slot_id)
            slot.enabled = True
        if slot.slot_id == PRIMARY_SLOT_ID:
            slot.enabled = True
