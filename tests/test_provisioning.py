"""
Tests for ProvisioningOrchestrator.

The network is replaced by the FakeFetcher fixture, which serves canned ZIP
payloads keyed by URL and records every URL it is asked for.
"""

import asyncio

import pytest

from avatarslots.constants import (
    EVENT_PROVISIONING_PROGRESS,
    PRIMARY_FALLBACK_URL,
    PRIMARY_SLOT_ID,
    SLOT_DEFAULT_URLS,
)
from avatarslots.events import EventBus
from avatarslots.exceptions import (
    DownloadError,
    InvalidSlotError,
    MissingUrlError,
    NoModelFoundError,
    ValidationError,
)
from avatarslots.paths import AppPaths
from avatarslots.provisioning import ProvisioningOrchestrator, validate_bundle_url
from avatarslots.slots.models import SlotConfig

pytestmark = [pytest.mark.unit]

PRIMARY_URL = SLOT_DEFAULT_URLS[PRIMARY_SLOT_ID]
CAT_URL = SLOT_DEFAULT_URLS["character_2"]
STEVE_URL = SLOT_DEFAULT_URLS["character_3"]
CUSTOM_URL = "https://example.com/custom.zip"


@pytest.fixture
def app_paths(data_dir):
    return AppPaths.from_data_dir(data_dir)


@pytest.fixture
def progress_events():
    return []


@pytest.fixture
def event_bus(progress_events):
    bus = EventBus()
    bus.subscribe(
        EVENT_PROVISIONING_PROGRESS, lambda _event, payload: progress_events.append(payload)
    )
    return bus


@pytest.fixture
def fetcher(fake_fetcher, flat_bundle, nested_bundle, make_zip):
    return fake_fetcher(
        {
            PRIMARY_URL: flat_bundle,
            CAT_URL: nested_bundle,
            STEVE_URL: make_zip({"steve/steve.model3.json": b"{}"}),
            CUSTOM_URL: make_zip({"custom/custom.model3.json": b"{}"}),
        }
    )


@pytest.fixture
def orchestrator(app_paths, event_bus, fetcher):
    return ProvisioningOrchestrator.from_paths(
        app_paths, events=event_bus, fetcher_factory=fetcher
    )


class TestValidateBundleUrl:
    def test_strips_whitespace(self):
        assert validate_bundle_url("  https://x.example/a.zip ") == "https://x.example/a.zip"

    def test_blank_allowed_by_default(self):
        assert validate_bundle_url("   ") == ""

    def test_blank_rejected_when_required(self):
        with pytest.raises(ValidationError):
            validate_bundle_url("", allow_blank=False)

    def test_non_zip_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_bundle_url("https://x.example/model.tar.gz")
        assert exc_info.value.field == "url"


class TestEnsureReady:
    @pytest.mark.asyncio
    async def test_flat_bundle_is_provisioned_and_persisted(
        self, orchestrator, app_paths, progress_events
    ):
        slot = await orchestrator.ensure_ready(PRIMARY_SLOT_ID)

        assert slot.asset_folder == "Hiyori"
        assert slot.descriptor_file == "Hiyori.model3.json"
        assert slot.aux_asset_folder == "Hiyori.2048"
        root = app_paths.slot_root(PRIMARY_SLOT_ID)
        assert (root / "Hiyori" / "Hiyori.model3.json").is_file()

        persisted = orchestrator.store.get(PRIMARY_SLOT_ID)
        assert persisted.asset_folder == "Hiyori"
        assert persisted.descriptor_file == "Hiyori.model3.json"

        steps = [event["step"] for event in progress_events]
        assert steps == ["downloading", "extracting", "detecting", "complete"]
        assert {event["slot_id"] for event in progress_events} == {PRIMARY_SLOT_ID}

    @pytest.mark.asyncio
    async def test_second_call_does_not_fetch(self, orchestrator, fetcher):
        first = await orchestrator.ensure_ready("character_2")
        second = await orchestrator.ensure_ready("character_2")

        assert fetcher.calls == [CAT_URL]
        assert second.asset_folder == first.asset_folder == "cat"
        assert second.aux_asset_folder == "textures"

    @pytest.mark.asyncio
    async def test_missing_files_trigger_reprovision(
        self, orchestrator, fetcher, app_paths
    ):
        await orchestrator.ensure_ready("character_2")
        (app_paths.slot_root("character_2") / "cat" / "cat.model3.json").unlink()

        await orchestrator.ensure_ready("character_2")

        assert fetcher.calls == [CAT_URL, CAT_URL]

    @pytest.mark.asyncio
    async def test_stale_files_in_root_are_wiped(self, orchestrator, app_paths):
        root = app_paths.slot_root("character_2")
        root.mkdir(parents=True)
        (root / "leftover.txt").write_text("old")

        await orchestrator.ensure_ready("character_2")

        assert not (root / "leftover.txt").exists()

    @pytest.mark.asyncio
    async def test_failed_download_leaves_record_unchanged(self, orchestrator, fetcher):
        await orchestrator.ensure_ready("character_2")
        before = orchestrator.store.get("character_2")
        (
            orchestrator.paths.slot_root("character_2") / "cat" / "cat.model3.json"
        ).unlink()
        fetcher.payloads[CAT_URL] = DownloadError("boom", url=CAT_URL, status_code=500)

        with pytest.raises(DownloadError):
            await orchestrator.ensure_ready("character_2")

        assert orchestrator.store.get("character_2") == before

    @pytest.mark.asyncio
    async def test_bundle_without_model_fails(self, orchestrator, fetcher, make_zip):
        fetcher.payloads[CAT_URL] = make_zip({"readme.txt": b"no model here"})

        with pytest.raises(NoModelFoundError):
            await orchestrator.ensure_ready("character_2")

        slot = orchestrator.store.get("character_2")
        assert slot.asset_folder is None
        assert slot.descriptor_file is None

    @pytest.mark.asyncio
    async def test_unknown_slot_raises(self, orchestrator):
        with pytest.raises(InvalidSlotError):
            await orchestrator.ensure_ready("character_42")

    @pytest.mark.asyncio
    async def test_non_primary_without_url_raises(self, orchestrator, mocker):
        mocker.patch.object(
            orchestrator.store,
            "load",
            return_value=[
                SlotConfig.default_for(PRIMARY_SLOT_ID),
                SlotConfig("character_2", "", True),
                SlotConfig("character_3"),
            ],
        )

        with pytest.raises(MissingUrlError) as exc_info:
            await orchestrator.ensure_ready("character_2")
        assert exc_info.value.slot_id == "character_2"

    @pytest.mark.asyncio
    async def test_primary_without_url_uses_fallback(
        self, orchestrator, fetcher, flat_bundle, mocker
    ):
        fetcher.payloads[PRIMARY_FALLBACK_URL] = flat_bundle
        mocker.patch.object(
            orchestrator.store,
            "load",
            return_value=[
                SlotConfig(PRIMARY_SLOT_ID, "", True),
                SlotConfig("character_2"),
                SlotConfig("character_3"),
            ],
        )
        mocker.patch.object(
            orchestrator, "_record_layout", return_value=SlotConfig(PRIMARY_SLOT_ID)
        )

        await orchestrator.ensure_ready(PRIMARY_SLOT_ID)

        assert fetcher.calls == [PRIMARY_FALLBACK_URL]

    @pytest.mark.asyncio
    async def test_concurrent_calls_for_one_slot_fetch_once(self, orchestrator, fetcher):
        results = await asyncio.gather(
            orchestrator.ensure_ready("character_2"),
            orchestrator.ensure_ready("character_2"),
        )

        assert fetcher.calls == [CAT_URL]
        assert results[0].asset_folder == results[1].asset_folder == "cat"


class TestSaveSlot:
    def test_sets_url_and_enabled(self, orchestrator):
        slot = orchestrator.save_slot("character_3", CUSTOM_URL, True)

        assert slot.bundle_url == CUSTOM_URL
        assert slot.enabled is True
        assert orchestrator.store.get("character_3").bundle_url == CUSTOM_URL

    def test_enabled_slot_needs_url(self, orchestrator):
        with pytest.raises(ValidationError):
            orchestrator.save_slot("character_2", "  ", True)

    def test_url_must_be_zip(self, orchestrator):
        with pytest.raises(ValidationError):
            orchestrator.save_slot("character_2", "https://example.com/model", True)

    def test_primary_cannot_be_disabled(self, orchestrator):
        slot = orchestrator.save_slot(PRIMARY_SLOT_ID, PRIMARY_URL, False)
        assert slot.enabled is True

    def test_primary_cannot_be_cleared(self, orchestrator):
        with pytest.raises(ValidationError):
            orchestrator.save_slot(PRIMARY_SLOT_ID, "", False)

    def test_unknown_slot_raises(self, orchestrator):
        with pytest.raises(InvalidSlotError):
            orchestrator.save_slot("nope", CUSTOM_URL, True)

    @pytest.mark.asyncio
    async def test_disabling_clears_asset_fields(self, orchestrator):
        await orchestrator.ensure_ready("character_2")

        slot = orchestrator.save_slot("character_2", CAT_URL, False)

        assert slot.enabled is False
        assert slot.asset_folder is None
        assert orchestrator.store.get("character_2").descriptor_file is None

    @pytest.mark.asyncio
    async def test_same_url_keeps_asset_fields(self, orchestrator):
        await orchestrator.ensure_ready("character_2")

        slot = orchestrator.save_slot("character_2", CAT_URL, True)

        assert slot.asset_folder == "cat"

    @pytest.mark.asyncio
    async def test_new_url_clears_asset_fields(self, orchestrator):
        await orchestrator.ensure_ready("character_2")

        slot = orchestrator.save_slot("character_2", CUSTOM_URL, True)

        assert slot.asset_folder is None


class TestChangeAndReset:
    @pytest.mark.asyncio
    async def test_change_bundle_downloads_new_model(self, orchestrator, fetcher):
        await orchestrator.ensure_ready("character_3")
        fetcher.calls.clear()

        slot = await orchestrator.change_bundle("character_3", CUSTOM_URL)

        assert fetcher.calls == [CUSTOM_URL]
        assert slot.bundle_url == CUSTOM_URL
        assert slot.enabled is True
        assert slot.asset_folder == "custom"

    @pytest.mark.asyncio
    async def test_change_bundle_rejects_bad_url(self, orchestrator, fetcher):
        with pytest.raises(ValidationError):
            await orchestrator.change_bundle("character_3", "https://example.com/x.rar")
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_reset_bundle_restores_default(self, orchestrator, fetcher):
        await orchestrator.change_bundle("character_2", CUSTOM_URL)

        slot = await orchestrator.reset_bundle("character_2")

        assert slot.bundle_url == CAT_URL
        assert slot.asset_folder == "cat"
        assert fetcher.calls[-1] == CAT_URL


class TestConcurrentChanges:
    @pytest.mark.asyncio
    async def test_change_bundle_waits_for_running_provisioning(
        self, orchestrator, fetcher
    ):
        fetcher.delay = 0.05

        async def _change_later():
            await asyncio.sleep(0.01)
            return await orchestrator.change_bundle("character_2", CUSTOM_URL)

        first, changed = await asyncio.gather(
            orchestrator.ensure_ready("character_2"), _change_later()
        )

        assert first.asset_folder == "cat"
        assert changed.bundle_url == CUSTOM_URL
        assert changed.asset_folder == "custom"
        assert fetcher.calls == [CAT_URL, CUSTOM_URL]
        stored = orchestrator.store.get("character_2")
        assert stored.bundle_url == CUSTOM_URL
        assert stored.asset_folder == "custom"

    @pytest.mark.asyncio
    async def test_url_saved_during_provisioning_is_kept(self, orchestrator, fetcher):
        fetcher.delay = 0.05

        async def _save_later():
            await asyncio.sleep(0.01)
            orchestrator.save_slot("character_2", CUSTOM_URL, True)

        result, _ = await asyncio.gather(
            orchestrator.ensure_ready("character_2"), _save_later()
        )

        assert result.bundle_url == CUSTOM_URL
        assert result.asset_folder is None
        stored = orchestrator.store.get("character_2")
        assert stored.bundle_url == CUSTOM_URL
        assert stored.is_provisioned is False

        fetcher.delay = 0.0
        slot = await orchestrator.ensure_ready("character_2")

        assert slot.asset_folder == "custom"
        assert fetcher.calls == [CAT_URL, CUSTOM_URL]


class TestImportFromFolder:
    @pytest.fixture
    def model_folder(self, tmp_path):
        folder = tmp_path / "my_model"
        (folder / "mine.4096").mkdir(parents=True)
        (folder / "mine.model3.json").write_text("{}")
        (folder / "mine.4096" / "texture_00.png").write_bytes(b"png")
        return folder

    @pytest.mark.asyncio
    async def test_copies_and_records_local_url(
        self, orchestrator, fetcher, model_folder, app_paths
    ):
        slot = await orchestrator.import_from_folder("character_3", model_folder)

        assert slot.bundle_url == f"local:{model_folder.resolve()}"
        assert slot.enabled is True
        assert slot.asset_folder == "mine"
        assert slot.aux_asset_folder == "mine.4096"
        assert (app_paths.slot_root("character_3") / "mine" / "mine.model3.json").is_file()
        # The source folder is left untouched
        assert (model_folder / "mine.model3.json").is_file()
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_local_slot_reprovisions_from_folder(
        self, orchestrator, fetcher, model_folder, app_paths, progress_events
    ):
        await orchestrator.import_from_folder("character_3", model_folder)
        (app_paths.slot_root("character_3") / "mine" / "mine.model3.json").unlink()
        progress_events.clear()

        slot = await orchestrator.ensure_ready("character_3")

        assert slot.asset_folder == "mine"
        assert fetcher.calls == []
        assert progress_events[0]["step"] == "copying"

    @pytest.mark.asyncio
    async def test_not_a_folder(self, orchestrator, tmp_path):
        with pytest.raises(ValidationError):
            await orchestrator.import_from_folder("character_3", tmp_path / "missing")

    @pytest.mark.asyncio
    async def test_folder_without_model(self, orchestrator, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        with pytest.raises(NoModelFoundError):
            await orchestrator.import_from_folder("character_3", empty)
        assert orchestrator.store.get("character_3").bundle_url == SLOT_DEFAULT_URLS[
            "character_3"
        ]


class TestSlotPaths:
    @pytest.mark.asyncio
    async def test_paths_after_provisioning(self, orchestrator, app_paths):
        await orchestrator.ensure_ready(PRIMARY_SLOT_ID)

        paths = orchestrator.slot_paths(PRIMARY_SLOT_ID)

        root = app_paths.slot_root(PRIMARY_SLOT_ID)
        assert paths.root == root
        assert paths.descriptor_path == root / "Hiyori" / "Hiyori.model3.json"
        assert paths.aux_dir == root / "Hiyori" / "Hiyori.2048"

    def test_paths_before_provisioning(self, orchestrator, app_paths):
        paths = orchestrator.slot_paths("character_2")
        assert paths.root == app_paths.slot_root("character_2")
        assert paths.model_dir is None
        assert paths.descriptor_path is None
