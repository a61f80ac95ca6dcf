"""
Tests for the avatarslots command-line interface.
"""

import json

import pytest

from avatarslots import cli
from avatarslots.constants import SLOT_DEFAULT_URLS

pytestmark = [pytest.mark.unit]

CUSTOM_URL = "https://example.com/custom.zip"


@pytest.fixture
def run(data_dir):
    """Invoke cli.main against the isolated data directory."""

    def _run(*args):
        cli.main(["--data-dir", str(data_dir), *args])

    return _run


class TestCliCommands:
    def test_no_command_prints_help(self, capsys):
        cli.main([])
        assert "usage" in capsys.readouterr().out.lower()

    def test_version(self, capsys, mocker):
        mocker.patch("avatarslots.cli.get_app_version", return_value="1.2.3")
        cli.main(["version"])
        assert "avatarslots v1.2.3" in capsys.readouterr().out

    def test_slots_lists_every_slot(self, run, capsys, data_dir):
        run("slots")

        out = capsys.readouterr().out
        for slot_id, url in SLOT_DEFAULT_URLS.items():
            assert slot_id in out
            assert url in out
        assert (data_dir / ".characters.json").exists()

    def test_set_updates_slot(self, run, data_dir):
        run("set", "character_2", CUSTOM_URL, "--disable")

        entries = json.loads((data_dir / ".characters.json").read_text())
        slot = next(e for e in entries if e["slot_id"] == "character_2")
        assert slot["model_url"] == CUSTOM_URL
        assert slot["enabled"] is False

    def test_invalid_url_exits_with_error(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run("set", "character_2", "https://example.com/model.rar")
        assert exc_info.value.code == 1

    def test_unknown_slot_rejected_by_parser(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run("ensure", "character_9")
        assert exc_info.value.code == 2

    def test_ensure_downloads_via_fetcher(
        self, run, capsys, mocker, fake_fetcher, nested_bundle
    ):
        fetcher = fake_fetcher({SLOT_DEFAULT_URLS["character_2"]: nested_bundle})
        mocker.patch("avatarslots.provisioning.BundleFetcher", return_value=fetcher)

        run("ensure", "character_2")

        assert fetcher.calls == [SLOT_DEFAULT_URLS["character_2"]]
        assert "cat/cat.model3.json" in capsys.readouterr().out

    def test_import_and_paths(self, run, capsys, tmp_path, data_dir):
        folder = tmp_path / "local_model"
        folder.mkdir()
        (folder / "mine.model3.json").write_text("{}")

        run("import", "character_3", str(folder))
        run("paths", "character_3")

        out = capsys.readouterr().out
        expected = data_dir / "models" / "character_3" / "mine" / "mine.model3.json"
        assert str(expected) in out

    def test_settings_error_exits(self, tmp_path, data_dir):
        settings = tmp_path / "config.yaml"
        settings.write_text("- not\n- a mapping\n", encoding="utf-8")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--settings", str(settings), "--data-dir", str(data_dir), "slots"])
        assert exc_info.value.code == 1

    def test_settings_data_dir_is_used(self, tmp_path, capsys):
        data_dir = tmp_path / "from_settings"
        settings = tmp_path / "config.yaml"
        settings.write_text(f"DATA_DIR: {data_dir}\n", encoding="utf-8")

        cli.main(["--settings", str(settings), "paths", "character_2"])

        assert str(data_dir / "models" / "character_2") in capsys.readouterr().out
        assert (data_dir / ".characters.json").exists()
