"""
Handles the low-level downloading of files over HTTP.

Bodies are streamed into a ``.part`` file next to the destination and moved
into place only once complete, so a failed transfer never leaves a fragment
that later passes an existence check.
"""

import asyncio
import logging
import os

import aiofiles
import aiohttp

from asmr_dl.exceptions import (
    ContentLengthMismatch,
    DownloadError,
    NetworkError,
    WriteError,
)

log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36"
)
CHUNK_SIZE = 262144  # 256 KB

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(
    max_workers: int = 8, connect_timeout: float = 15, read_timeout: float = 90
) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run. Proxy settings are taken from the
    environment.

    Args:
        max_workers: Maximum concurrent connections (should match config.max_workers).
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_workers * 2,
            limit_per_host=max_workers,
            ttl_dns_cache=600,
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=read_timeout
        )
        _connection_pool = aiohttp.ClientSession(
            connector=connector, timeout=timeout, trust_env=True
        )
        log.debug(f"Created download pool with limit_per_host={max_workers}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


def part_path_for(destination_path: str) -> str:
    return destination_path + ".part"


class Downloader:
    """A single fetch-to-disk operation with a plain-GET fallback."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        max_workers: int = 8,
        connect_timeout: float = 15,
        read_timeout: float = 90,
    ):
        self._session = session
        self.user_agent = user_agent
        self.max_workers = max_workers
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        return await get_connection_pool(
            self.max_workers, self.connect_timeout, self.read_timeout
        )

    async def download_file(self, url: str, destination_path: str) -> int:
        """
        Downloads a URL to a destination path.

        Returns:
            The number of bytes written.

        Raises:
            NetworkError: On connection failures and HTTP error statuses.
            WriteError: If the file cannot be written.
        """
        part_path = part_path_for(destination_path)
        try:
            try:
                written = await self._stream_to_file(url, part_path)
            except ContentLengthMismatch as e:
                log.debug(
                    f"Content length mismatch for '{os.path.basename(destination_path)}'"
                    f" ({e}). Retrying with a plain GET..."
                )
                written = await self._plain_get(url, part_path)
            try:
                os.replace(part_path, destination_path)
            except OSError as e:
                raise WriteError(f"Could not move download into place: {e}") from e
            return written
        except DownloadError:
            await asyncio.to_thread(self._discard, part_path)
            raise
        except asyncio.CancelledError:
            await asyncio.to_thread(self._discard, part_path)
            raise

    async def _stream_to_file(self, url: str, part_path: str) -> int:
        """Streams the body to disk, checking it against the advertised length."""
        session = await self._get_session()
        try:
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                expected = response.content_length
                if response.headers.get("Content-Encoding", "identity") != "identity":
                    expected = None
                written = await self._write_body(response, part_path)
        except aiohttp.ClientPayloadError as e:
            raise ContentLengthMismatch(f"Incomplete response payload: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(self._describe(e)) from e

        if expected is not None and written != expected:
            raise ContentLengthMismatch(
                f"Content-Length is {expected} but {written} bytes were received"
            )
        return written

    async def _plain_get(self, url: str, part_path: str) -> int:
        """Re-fetches the body with a browser User-Agent and no length check."""
        session = await self._get_session()
        try:
            async with session.get(
                url, allow_redirects=True, headers={"User-Agent": self.user_agent}
            ) as response:
                response.raise_for_status()
                return await self._write_body(response, part_path)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(self._describe(e)) from e

    @staticmethod
    async def _write_body(response: aiohttp.ClientResponse, part_path: str) -> int:
        written = 0
        try:
            async with aiofiles.open(part_path, "wb") as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await f.write(chunk)
                    written += len(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError):
            # Both can be OSError subclasses; they belong to the transport.
            raise
        except OSError as e:
            raise WriteError(f"Could not write '{part_path}': {e}") from e
        return written

    @staticmethod
    def _describe(error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return "Request timed out"
        return str(error) or type(error).__name__

    @staticmethod
    def _discard(part_path: str) -> None:
        try:
            os.remove(part_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            log.error(f"Could not remove partial download '{part_path}': {e}")
