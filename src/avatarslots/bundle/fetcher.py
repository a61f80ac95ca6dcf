"""
Async Bundle Fetcher

This module retrieves bundle archives over HTTP(S) using aiohttp and hands
the payload to the extraction helpers. Session lifecycle follows the async
context manager protocol so a fetcher can be shared across several slots.
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, List, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from avatarslots.constants import (
    BYTES_PER_MEGABYTE,
    DEFAULT_REQUEST_TIMEOUT,
    FILE_SIZE_MB_LOGGING_THRESHOLD,
    HTTP_STATUS_ERROR_THRESHOLD,
)
from avatarslots.exceptions import DownloadError
from avatarslots.log_utils import logger
from avatarslots.paths import Pathish
from avatarslots.utils import get_user_agent

from .files import extract_archive


class BundleFetcher:
    """
    Asynchronous bundle retrieval using aiohttp.

    Example:
        async with BundleFetcher() as fetcher:
            payload = await fetcher.fetch_bytes("https://example.com/model.zip")
    """

    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT) -> None:
        """
        Initialize the fetcher.

        Parameters:
            timeout (float): Total request timeout in seconds.
        """
        self.timeout = ClientTimeout(total=timeout)
        self._session: Optional[ClientSession] = None
        self._closed: bool = False

    async def __aenter__(self) -> "BundleFetcher":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        """
        Ensure a session exists, creating one if needed.

        Returns:
            ClientSession: The active aiohttp session.
        """
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": get_user_agent()},
            )
            self._closed = False
        return self._session

    async def close(self) -> None:
        """Close the client session and release resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._closed = True

    async def fetch_bytes(self, url: str) -> bytes:
        """
        Retrieve the full payload at `url`.

        Parameters:
            url (str): Bundle URL.

        Returns:
            bytes: The response body.

        Raises:
            DownloadError: On a status >= 400, a transport error or a timeout.
                No retry is attempted.
        """
        session = await self._ensure_session()
        start_time = time.time()

        try:
            async with session.get(url) as response:
                if response.status >= HTTP_STATUS_ERROR_THRESHOLD:
                    raise DownloadError(
                        f"Download failed with status: {response.status}",
                        url=url,
                        status_code=response.status,
                    )
                payload = await response.read()
        except aiohttp.ClientError as e:
            logger.error(f"Download failed for {url}: {e}")
            raise DownloadError(
                f"Download failed: {e}", url=url, details=type(e).__name__
            ) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Download timed out for {url}")
            raise DownloadError("Download timed out", url=url) from e

        elapsed = time.time() - start_time
        size_mb = len(payload) / BYTES_PER_MEGABYTE
        if size_mb >= FILE_SIZE_MB_LOGGING_THRESHOLD:
            logger.info(f"Downloaded {url} ({size_mb:.1f} MB in {elapsed:.2f}s)")
        else:
            logger.info(f"Downloaded {url} ({len(payload)} bytes in {elapsed:.2f}s)")
        return payload

    async def download_and_extract(
        self,
        url: str,
        dest_dir: Pathish,
        on_downloaded: Optional[Callable[[], None]] = None,
    ) -> List[Path]:
        """
        Fetch the archive at `url` and extract it into `dest_dir`.

        Extraction runs in a worker thread so the event loop stays responsive.
        `on_downloaded` is called once the payload is in memory, before
        extraction starts.

        Raises:
            DownloadError: If retrieval fails.
            ExtractionError: If the payload is not a usable archive.
        """
        payload = await self.fetch_bytes(url)
        if on_downloaded is not None:
            on_downloaded()
        return await asyncio.to_thread(extract_archive, payload, dest_dir)
