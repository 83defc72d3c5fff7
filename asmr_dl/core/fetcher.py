"""
Fetches a single file to its destination, from existence check to content
validation, and reports any failure.
"""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path

from rich.markup import escape

from asmr_dl.exceptions import (
    CorruptContent,
    DownloadError,
    ProviderBlocked,
    WriteError,
)
from asmr_dl.media import ContentState, ContentValidator, Downloader
from asmr_dl.notify import WebhookNotifier
from asmr_dl.utils.path import create_dir, resolve_existing

log = logging.getLogger(__name__)


class FetchResult(Enum):
    DOWNLOADED = "downloaded"
    ALREADY_PRESENT = "already_present"


class FileFetcher:
    """
    Runs one download attempt for a URL and destination path.

    Successful outcomes are returned as a FetchResult. Failures are logged,
    sent to the notifier and re-raised as DownloadError subclasses; recording
    them is left to the caller.
    """

    def __init__(
        self,
        downloader: Downloader,
        validator: ContentValidator,
        notifier: WebhookNotifier,
        backoff_seconds: float = 10,
    ):
        self.downloader = downloader
        self.validator = validator
        self.notifier = notifier
        self.backoff_seconds = backoff_seconds

    async def fetch(self, url: str, store_path: str) -> FetchResult:
        """
        Downloads ``url`` to ``store_path`` unless a valid copy already exists.

        Raises:
            DownloadError: NetworkError, WriteError, ProviderBlocked or
                CorruptContent when the attempt fails.
        """
        try:
            return await self._fetch(url, store_path)
        except DownloadError as e:
            await self.report_failure(store_path, url, e)
            raise

    async def _fetch(self, url: str, store_path: str) -> FetchResult:
        state = await asyncio.to_thread(self.validator.inspect, store_path)
        if state is ContentState.VALID:
            log.debug(f"Skipping '{store_path}' (already downloaded).")
            return FetchResult.ALREADY_PRESENT
        if state is not ContentState.MISSING:
            log.info(
                f"[yellow]Removing unusable file before re-download:[/yellow] "
                f"[dim]{escape(store_path)}[/dim] ({state.value})"
            )
            await asyncio.to_thread(self._remove, store_path)

        try:
            await asyncio.to_thread(create_dir, Path(store_path).parent)
        except OSError as e:
            raise WriteError(f"Could not create destination directory: {e}") from e

        await self.downloader.download_file(url, store_path)

        state = await asyncio.to_thread(self.validator.inspect, store_path)
        if state is ContentState.BLOCKED:
            await asyncio.to_thread(self._remove, store_path)
            message = (
                f"File: {store_path} was blocked by the provider (error code 1015), "
                f"sleeping {self.backoff_seconds:g}s before continuing."
            )
            log.error(escape(message))
            await self.notify(message)
            await asyncio.sleep(self.backoff_seconds)
            raise ProviderBlocked("Provider returned its block page (error code 1015)")
        if state is ContentState.CORRUPT:
            await asyncio.to_thread(self._remove, store_path)
            raise CorruptContent("Downloaded file failed the audio integrity check")
        if state is ContentState.MISSING:
            raise WriteError("Downloaded file is missing from its destination")

        log.info(f"[green]✓ Downloaded:[/green] [dim]{escape(store_path)}[/dim]")
        return FetchResult.DOWNLOADED

    async def report_failure(
        self, store_path: str, url: str, error: DownloadError
    ) -> None:
        """Logs a failed download and mirrors it to the notifier."""
        if isinstance(error, ProviderBlocked):
            # Already reported together with the back-off.
            return
        detail = f"{type(error).__name__}: {error}"
        log.error(
            f"[red]✗ Failed:[/red] {escape(store_path)} "
            f"[dim]({escape(url)})[/dim] {escape(detail)}"
        )
        await self.notify(f"File: {store_path} failed to download: {detail}")

    async def notify(self, message: str) -> None:
        if not await self.notifier.send(message):
            log.debug("Webhook notification was not delivered.")

    @staticmethod
    def _remove(store_path: str) -> None:
        path = resolve_existing(store_path)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise WriteError(f"Could not remove unusable file '{path}': {e}") from e
