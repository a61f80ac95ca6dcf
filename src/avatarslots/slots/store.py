"""
Slot Store

Loads, merges, migrates and persists the configuration of every slot.

`load()` normalizes on read: the merged, backfilled list is written back to
the slots file before it is returned, so a partial or hand-edited file is
healed on the first load. Every load and save runs under one re-entrant lock
so the merge-then-persist step cannot interleave between threads.
"""

import json
import threading
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

from avatarslots.bundle.files import _atomic_write_json
from avatarslots.exceptions import SlotsFileError
from avatarslots.log_utils import logger
from avatarslots.paths import Pathish, require_slot_id

from .migration import migrate_or_default_slots
from .models import SlotConfig, apply_url_defaults, merge_slots

T = TypeVar("T")


class SlotStore:
    """File-backed store for the fixed slot list."""

    def __init__(self, slots_file: Pathish, legacy_file: Optional[Pathish] = None):
        """
        Parameters:
            slots_file: Path of the JSON slots file.
            legacy_file: Path of the legacy single-slot file consulted once when
                the slots file is missing.
        """
        self.slots_file = Path(slots_file)
        self.legacy_file = Path(legacy_file) if legacy_file is not None else None
        self._lock = threading.RLock()

    def _read_file(self) -> List[SlotConfig]:
        try:
            with open(self.slots_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SlotsFileError(
                "Failed to parse characters config",
                path=str(self.slots_file),
                details=str(e),
            ) from e
        except OSError as e:
            raise SlotsFileError(
                "Failed to read characters config",
                path=str(self.slots_file),
                details=str(e),
            ) from e

        if not isinstance(data, list):
            raise SlotsFileError(
                "Failed to parse characters config",
                path=str(self.slots_file),
                details=f"expected a JSON array, got {type(data).__name__}",
            )

        slots = []
        for index, entry in enumerate(data):
            if not isinstance(entry, dict):
                raise SlotsFileError(
                    "Failed to parse characters config",
                    path=str(self.slots_file),
                    details=f"entry {index} is not an object",
                )
            try:
                slots.append(SlotConfig.from_dict(entry))
            except ValueError as e:
                raise SlotsFileError(
                    "Failed to parse characters config",
                    path=str(self.slots_file),
                    details=str(e),
                ) from e
        return slots

    def _write_file(self, slots: Sequence[SlotConfig]) -> None:
        try:
            self.slots_file.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write_json(self.slots_file, [slot.to_dict() for slot in slots])
        except (OSError, TypeError) as e:
            raise SlotsFileError(
                "Failed to write characters config",
                path=str(self.slots_file),
                details=str(e),
            ) from e

    def load(self) -> List[SlotConfig]:
        """
        Load the full slot list, healing the file on disk as a side effect.

        With a slots file present: parse, merge by identifier, backfill blank
        URLs, persist, return. Without one: migrate from the legacy file (or
        use defaults), persist, return.

        Raises:
            SlotsFileError: If a present slots file is malformed or cannot be
                read or written. A corrupt file is never replaced by defaults.
        """
        with self._lock:
            if self.slots_file.exists():
                slots = merge_slots(self._read_file())
                apply_url_defaults(slots)
            else:
                logger.info(f"No slots file at {self.slots_file}; creating one")
                slots = migrate_or_default_slots(self.legacy_file)
            self._write_file(slots)
            return slots

    def save(self, slots: Sequence[SlotConfig]) -> List[SlotConfig]:
        """
        Merge `slots` by identifier and persist them.

        Returns:
            List[SlotConfig]: The merged list that was written.

        Raises:
            SlotsFileError: If the file cannot be written.
        """
        with self._lock:
            merged = merge_slots(slots)
            self._write_file(merged)
            logger.debug(f"Saved {len(merged)} slots to {self.slots_file}")
            return merged

    def update(self, mutator: Callable[[List[SlotConfig]], T]) -> T:
        """
        Load, apply `mutator` to the list in place, and save, as one critical section.

        Returns:
            Whatever `mutator` returns.
        """
        with self._lock:
            slots = self.load()
            result = mutator(slots)
            self.save(slots)
            return result

    def get(self, slot_id: str) -> SlotConfig:
        """
        Return the current record for `slot_id`.

        Raises:
            InvalidSlotError: If the identifier is unknown.
        """
        require_slot_id(slot_id)
        return next(s for s in self.load() if s.slot_id == slot_id)

    def reset_slot(self, slot_id: str) -> SlotConfig:
        """
        Reset one slot to its defaults; the record itself is never removed.

        Returns:
            SlotConfig: The reset record as persisted.
        """
        require_slot_id(slot_id)

        def _reset(slots: List[SlotConfig]) -> SlotConfig:
            fresh = SlotConfig.default_for(slot_id)
            apply_url_defaults([fresh])
            index = next(i for i, s in enumerate(slots) if s.slot_id == slot_id)
            slots[index] = fresh
            return fresh.copy()

        slot = self.update(_reset)
        logger.info(f"Reset {slot_id} to defaults")
        return slot
