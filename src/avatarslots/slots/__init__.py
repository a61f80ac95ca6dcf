"""
Slot Configuration

Core Components:
- models: Slot records, merge and URL backfill rules
- migration: One-time import of the legacy single-model file
- store: File-backed, lock-protected slot store
"""

from .migration import LegacyModelConfig, migrate_or_default_slots, read_legacy_config
from .models import SlotConfig, apply_url_defaults, merge_slots, slot_default_url
from .store import SlotStore

__all__ = [
    "SlotConfig",
    "SlotStore",
    "LegacyModelConfig",
    "merge_slots",
    "apply_url_defaults",
    "slot_default_url",
    "migrate_or_default_slots",
    "read_legacy_config",
]
