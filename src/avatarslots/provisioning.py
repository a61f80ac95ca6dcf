"""
Provisioning Orchestrator

Ensures a slot has a ready, valid model on disk: downloading, extracting and
normalizing its bundle only when the recorded layout is missing, then
persisting the discovered layout back into the slot record.

Each slot has a private asset root (``<data_dir>/models/<slot_id>``). The
slow path wipes and recreates that root before populating it; the wipe is
not rolled back on failure, but the slot record is only updated once
normalization has fully succeeded.
"""

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from avatarslots.bundle.fetcher import BundleFetcher
from avatarslots.bundle.files import copy_tree, ensure_directory, remove_tree
from avatarslots.bundle.normalizer import NormalizedLayout, contains_descriptor, normalize
from avatarslots.constants import (
    BUNDLE_EXTENSION,
    DEFAULT_REQUEST_TIMEOUT,
    EVENT_PROVISIONING_PROGRESS,
    LOCAL_URL_PREFIX,
    PRIMARY_FALLBACK_URL,
    PRIMARY_SLOT_ID,
    STEP_COMPLETE,
    STEP_COPYING,
    STEP_DETECTING,
    STEP_DOWNLOADING,
    STEP_EXTRACTING,
)
from avatarslots.events import EventBus
from avatarslots.exceptions import (
    FileSystemError,
    MissingUrlError,
    NoModelFoundError,
    ValidationError,
)
from avatarslots.log_utils import logger
from avatarslots.paths import AppPaths, Pathish, require_slot_id
from avatarslots.slots.models import SlotConfig, slot_default_url
from avatarslots.slots.store import SlotStore

FetcherFactory = Callable[[], Any]


@dataclass(frozen=True)
class SlotPaths:
    """Resolved on-disk locations for one slot."""

    root: Path
    model_dir: Optional[Path] = None
    descriptor_path: Optional[Path] = None
    aux_dir: Optional[Path] = None


def _find_slot(slots: List[SlotConfig], slot_id: str) -> SlotConfig:
    return next(s for s in slots if s.slot_id == slot_id)


def validate_bundle_url(url: str, *, allow_blank: bool = True) -> str:
    """
    Return the stripped URL if it is acceptable as a bundle URL.

    Raises:
        ValidationError: If the URL is blank (and blanks are not allowed) or
            does not point at a ``.zip`` archive.
    """
    stripped = (url or "").strip()
    if not stripped:
        if allow_blank:
            return ""
        raise ValidationError("Bundle URL must not be empty", field="url", value=url)
    if not stripped.endswith(BUNDLE_EXTENSION):
        raise ValidationError(
            f"Bundle URL must point to a {BUNDLE_EXTENSION} file",
            field="url",
            value=stripped,
        )
    return stripped


class ProvisioningOrchestrator:
    """
    Coordinates the fetcher, the normalizer and the slot store for each slot.

    Provisioning of a given slot is serialized with a per-slot asyncio lock so
    two callers can never race on the wipe-and-recreate of the same root.
    """

    def __init__(
        self,
        store: SlotStore,
        paths: AppPaths,
        events: Optional[EventBus] = None,
        fetcher_factory: Optional[FetcherFactory] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """
        Parameters:
            store: Slot store shared with every other collaborator.
            paths: Filesystem layout providing each slot's private root.
            events: Bus receiving `provisioning-progress` events.
            fetcher_factory: Zero-argument callable returning an async context
                manager with a `fetch_bytes(url)` coroutine. Defaults to
                `BundleFetcher`.
            request_timeout: Timeout passed to the default fetcher.
        """
        self.store = store
        self.paths = paths
        self.events = events or EventBus()
        self._fetcher_factory = fetcher_factory or (
            lambda: BundleFetcher(timeout=request_timeout)
        )
        self._slot_locks: Dict[str, asyncio.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_paths(
        cls, paths: AppPaths, events: Optional[EventBus] = None, **kwargs: Any
    ) -> "ProvisioningOrchestrator":
        """Build an orchestrator with a store over the standard files of `paths`."""
        store = SlotStore(paths.slots_file, paths.legacy_model_config_file)
        return cls(store, paths, events=events, **kwargs)

    def _lock_for(self, slot_id: str) -> asyncio.Lock:
        with self._locks_guard:
            lock = self._slot_locks.get(slot_id)
            if lock is None:
                lock = asyncio.Lock()
                self._slot_locks[slot_id] = lock
            return lock

    def _emit_progress(self, step: str, message: str, slot_id: str) -> None:
        self.events.emit(
            EVENT_PROVISIONING_PROGRESS,
            {"step": step, "message": message, "slot_id": slot_id},
        )

    # ------------------------------------------------------------------
    # Slot configuration
    # ------------------------------------------------------------------

    def get_slots(self) -> List[SlotConfig]:
        """Return the full, merged slot list (healing the slots file on disk)."""
        return self.store.load()

    def save_slot(self, slot_id: str, url: str, enabled: bool) -> SlotConfig:
        """
        Update a slot's URL and enablement.

        The primary slot always stays enabled. Disabling a slot or changing its
        URL clears its recorded layout so the next provisioning starts fresh.

        Raises:
            InvalidSlotError: If the identifier is unknown.
            ValidationError: If an enabled slot would be left without a URL, or
                the URL is not a ``.zip`` archive.
        """
        require_slot_id(slot_id)
        effective_enabled = True if slot_id == PRIMARY_SLOT_ID else bool(enabled)
        bundle_url = validate_bundle_url(url, allow_blank=not effective_enabled)

        def _apply(slots: List[SlotConfig]) -> SlotConfig:
            slot = _find_slot(slots, slot_id)
            if slot.bundle_url.strip() != bundle_url:
                slot.clear_assets()
            slot.bundle_url = bundle_url
            slot.enabled = effective_enabled
            if not slot.enabled:
                slot.clear_assets()
            return slot.copy()

        slot = self.store.update(_apply)
        logger.info(
            f"Saved {slot_id}: url={slot.bundle_url or '<none>'} enabled={slot.enabled}"
        )
        return slot

    def slot_paths(self, slot_id: str) -> SlotPaths:
        """Return the private root and, once provisioned, the model locations."""
        require_slot_id(slot_id)
        root = self.paths.slot_root(slot_id)
        slot = self.store.get(slot_id)
        if not slot.is_provisioned:
            return SlotPaths(root=root)
        model_dir = root / slot.asset_folder
        return SlotPaths(
            root=root,
            model_dir=model_dir,
            descriptor_path=model_dir / slot.descriptor_file,
            aux_dir=model_dir / slot.aux_asset_folder if slot.aux_asset_folder else None,
        )

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def _resolve_url(self, slot: SlotConfig) -> str:
        if slot.has_url:
            return slot.bundle_url.strip()
        if slot.slot_id == PRIMARY_SLOT_ID:
            return PRIMARY_FALLBACK_URL
        raise MissingUrlError(slot.slot_id)

    def _is_ready_on_disk(self, slot: SlotConfig, root: Path) -> bool:
        if not slot.is_provisioned:
            return False
        return (root / slot.asset_folder / slot.descriptor_file).is_file()

    async def _populate_root(self, slot_id: str, url: str, root: Path) -> None:
        if url.startswith(LOCAL_URL_PREFIX):
            source = Path(url[len(LOCAL_URL_PREFIX) :])
            if not source.is_dir():
                raise FileSystemError(
                    "Local model folder no longer exists", path=str(source)
                )
            self._emit_progress(STEP_COPYING, "Copying model files...", slot_id)
            await asyncio.to_thread(copy_tree, source, root)
            return

        self._emit_progress(STEP_DOWNLOADING, "Downloading model...", slot_id)
        async with self._fetcher_factory() as fetcher:
            await fetcher.download_and_extract(
                url,
                root,
                on_downloaded=lambda: self._emit_progress(
                    STEP_EXTRACTING, "Extracting model...", slot_id
                ),
            )

    def _record_layout(
        self, slot_id: str, source_url: str, url: str, layout: NormalizedLayout
    ) -> Optional[SlotConfig]:
        """
        Persist `layout` unless the slot was repointed while it was being built.

        `source_url` is the URL stored on the record when provisioning began.
        Returns None, leaving the record untouched, when it no longer matches.
        """

        def _apply(slots: List[SlotConfig]) -> Optional[SlotConfig]:
            slot = _find_slot(slots, slot_id)
            if slot.bundle_url.strip() != source_url:
                return None
            slot.bundle_url = url
            slot.asset_folder = layout.asset_folder
            slot.descriptor_file = layout.descriptor_file
            slot.aux_asset_folder = layout.aux_asset_folder
            return slot.copy()

        return self.store.update(_apply)

    async def _provision_locked(self, slot_id: str) -> SlotConfig:
        slots = await asyncio.to_thread(self.store.load)
        slot = _find_slot(slots, slot_id)
        source_url = slot.bundle_url.strip()
        url = self._resolve_url(slot)
        root = self.paths.slot_root(slot_id)

        if self._is_ready_on_disk(slot, root):
            logger.debug(f"{slot_id} already provisioned at {root / slot.asset_folder}")
            return slot

        logger.info(f"Provisioning {slot_id} from {url}")
        await asyncio.to_thread(remove_tree, root)
        await asyncio.to_thread(ensure_directory, root)
        await self._populate_root(slot_id, url, root)

        self._emit_progress(STEP_DETECTING, "Detecting model structure...", slot_id)
        layout = await asyncio.to_thread(normalize, root)

        updated = await asyncio.to_thread(
            self._record_layout, slot_id, source_url, url, layout
        )
        if updated is None:
            logger.warning(
                f"{slot_id} was changed while provisioning from {url}; "
                "discarding the outdated layout"
            )
            return await asyncio.to_thread(self.store.get, slot_id)
        self._emit_progress(STEP_COMPLETE, "Model ready", slot_id)
        logger.info(
            f"{slot_id} ready: {layout.asset_folder}/{layout.descriptor_file}"
            + (f" (textures: {layout.aux_asset_folder})" if layout.aux_asset_folder else "")
        )
        return updated

    async def ensure_ready(self, slot_id: str) -> SlotConfig:
        """
        Make sure `slot_id` has a valid, normalized model on disk.

        Fast path: when the recorded model folder and descriptor exist under
        the slot's private root, the record is returned without network access.
        Slow path: the root is wiped and recreated, the bundle is fetched,
        extracted and normalized, and the discovered layout is persisted.

        Returns:
            SlotConfig: The slot record describing the ready model.

        Raises:
            InvalidSlotError: If the identifier is unknown.
            MissingUrlError: If a non-primary slot has no URL.
            DownloadError: If the bundle cannot be retrieved.
            ExtractionError: If the bundle is not a usable archive.
            NoModelFoundError: If the bundle holds no descriptor file.
            FileSystemError: If the private root cannot be cleared or populated.
        """
        require_slot_id(slot_id)
        async with self._lock_for(slot_id):
            return await self._provision_locked(slot_id)

    async def change_bundle(self, slot_id: str, url: str) -> SlotConfig:
        """
        Point a slot at a new bundle and provision it.

        The slot is enabled and its recorded layout cleared before provisioning,
        so the new bundle is always downloaded.

        Raises:
            ValidationError: If `url` is blank or not a ``.zip`` archive.
            Any error raised by `ensure_ready`.
        """
        require_slot_id(slot_id)
        bundle_url = validate_bundle_url(url, allow_blank=False)

        def _apply(slots: List[SlotConfig]) -> None:
            slot = _find_slot(slots, slot_id)
            slot.bundle_url = bundle_url
            slot.enabled = True
            slot.clear_assets()

        async with self._lock_for(slot_id):
            await asyncio.to_thread(self.store.update, _apply)
            logger.info(f"Changing {slot_id} bundle to {bundle_url}")
            return await self._provision_locked(slot_id)

    async def reset_bundle(self, slot_id: str) -> SlotConfig:
        """Switch a slot back to its built-in bundle and provision it."""
        require_slot_id(slot_id)
        return await self.change_bundle(slot_id, slot_default_url(slot_id))

    async def import_from_folder(self, slot_id: str, folder: Pathish) -> SlotConfig:
        """
        Install a model from a local folder instead of a downloaded bundle.

        The folder is copied into the slot's private root and normalized; the
        slot records a ``local:<folder>`` URL so later re-provisioning copies
        from the same place.

        Raises:
            ValidationError: If `folder` is not a directory.
            NoModelFoundError: If `folder` holds no descriptor within the search depth.
            FileSystemError: If the copy fails.
        """
        require_slot_id(slot_id)
        source = Path(folder).expanduser()
        if not source.is_dir():
            raise ValidationError(
                "Selected path is not a valid folder", field="folder", value=str(folder)
            )
        if not await asyncio.to_thread(contains_descriptor, source):
            raise NoModelFoundError(str(source))

        url = f"{LOCAL_URL_PREFIX}{source.resolve()}"

        def _apply(slots: List[SlotConfig]) -> None:
            slot = _find_slot(slots, slot_id)
            slot.bundle_url = url
            slot.enabled = True
            slot.clear_assets()

        async with self._lock_for(slot_id):
            await asyncio.to_thread(self.store.update, _apply)
            return await self._provision_locked(slot_id)
