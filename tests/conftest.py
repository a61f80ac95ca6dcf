import asyncio
import io
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Union

import platformdirs
import pytest

from avatarslots.bundle.fetcher import BundleFetcher

_ASYNC_NETWORK_BLOCK_MSG = (
    "Async network access is blocked during tests. Mock aiohttp.ClientSession."
)


async def _async_block_network(*_args, **_kwargs):
    """
    Prevent async network calls during tests by raising a RuntimeError.

    Raises:
        RuntimeError: `_ASYNC_NETWORK_BLOCK_MSG`, suggesting to mock `aiohttp.ClientSession`.
    """
    raise RuntimeError(_ASYNC_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """Register the markers used across the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as an asyncio test")
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line("markers", "integration: tests spanning several modules")
    config.addinivalue_line("markers", "bundle: bundle fetching and layout tests")
    config.addinivalue_line("markers", "slots: slot store and migration tests")


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point every platformdirs lookup and XDG variable at a throwaway directory tree.

    Keeps tests from reading or writing the real user's slots file, settings or logs.
    """
    base = tmp_path_factory.mktemp("avatarslots")
    cache_dir = base / "cache"
    state_dir = base / "state"
    config_dir = base / "config"
    data_dir = base / "data"
    log_dir = state_dir / "log"

    for path in (cache_dir, state_dir, config_dir, data_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))
    monkeypatch.delenv("AVATARSLOTS_LOG_LEVEL", raising=False)

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_state_dir", lambda *_args, **_kwargs: str(state_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_data_dir", lambda *_args, **_kwargs: str(data_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )


def pytest_runtest_setup():
    """Replace aiohttp's HTTP entry points with a blocker so no test reaches the network."""
    try:
        import aiohttp  # type: ignore[import-not-found]

        aiohttp.request = _async_block_network
        aiohttp.ClientSession.request = _async_block_network  # type: ignore[assignment]
        aiohttp.ClientSession.get = _async_block_network  # type: ignore[assignment]
        aiohttp.ClientSession.post = _async_block_network  # type: ignore[assignment]
    except ImportError:
        pass


# =============================================================================
# Bundle Fixtures
# =============================================================================

Entries = Dict[str, Optional[Union[bytes, str]]]


def build_zip(entries: Entries) -> bytes:
    """
    Build an in-memory ZIP archive.

    Keys are member names; a `None` value (or a name ending in "/") produces a
    directory-only entry.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            if content is None or name.endswith("/"):
                zf.writestr(name if name.endswith("/") else name + "/", b"")
            else:
                zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def make_zip():
    """Provide `build_zip` as a fixture."""
    return build_zip


@pytest.fixture
def flat_bundle() -> bytes:
    """A wrapper-less bundle: descriptor, moc and three textures at the root."""
    return build_zip(
        {
            "Hiyori.model3.json": b"{}",
            "Hiyori.moc3": b"moc",
            "Hiyori.2048/": None,
            "Hiyori.2048/texture_00.png": b"png",
            "Hiyori.2048/texture_01.png": b"png",
            "Hiyori.2048/texture_02.png": b"png",
        }
    )


@pytest.fixture
def nested_bundle() -> bytes:
    """A bundle wrapping its model in a single top-level folder."""
    return build_zip(
        {
            "cat/": None,
            "cat/cat.model3.json": b"{}",
            "cat/cat.moc3": b"moc",
            "cat/textures/texture_00.png": b"png",
        }
    )


class FakeFetcher(BundleFetcher):
    """
    BundleFetcher that serves canned payloads and records requested URLs.

    A payload that is an exception instance is raised instead of returned.
    Setting `delay` holds every request for that many seconds.
    """

    def __init__(self, payloads: Dict[str, object]):
        super().__init__()
        self.payloads = payloads
        self.calls: List[str] = []
        self.delay = 0.0

    def __call__(self) -> "FakeFetcher":
        return self

    async def __aenter__(self) -> "FakeFetcher":
        return self

    async def __aexit__(self, *_exc) -> None:
        return None

    async def fetch_bytes(self, url: str) -> bytes:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        payload = self.payloads[url]
        if isinstance(payload, BaseException):
            raise payload
        return payload  # type: ignore[return-value]


@pytest.fixture
def data_dir(tmp_path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def fake_fetcher():
    """Provide a factory building a `FakeFetcher` from a url -> payload mapping."""
    return FakeFetcher
