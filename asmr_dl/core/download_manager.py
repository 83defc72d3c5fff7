"""
The main orchestrator for expanding download sources and running the bulk
download pass.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from rich.markup import escape

from asmr_dl.cli.progress_manager import ProgressManager
from asmr_dl.exceptions import DownloadError, LedgerIOError, ProviderBlocked
from asmr_dl.models.config import AppConfig
from asmr_dl.models.stats import DownloadStats
from asmr_dl.storage.ledger import FailedDownloadLedger, LedgerEntry
from asmr_dl.utils.path import destination_for

from .fetcher import FetchResult, FileFetcher

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadItem:
    """A file to fetch and the path to store it at."""

    url: str
    store_path: str


def expand_sources(sources: list[str], output_dir: Path) -> list[DownloadItem]:
    """
    Turns command line sources into download items.

    A source is either a URL or a file listing one ``URL [relative/path]`` per
    line; blank lines and lines starting with '#' are ignored. Duplicate
    destinations are dropped, keeping the first.
    """
    lines: list[str] = []
    for source in sources:
        if Path(source).is_file():
            log.info(f"Reading URLs from file: [dim]{escape(source)}[/dim]")
            try:
                with open(source, encoding="utf-8") as f:
                    lines.extend(
                        line.strip()
                        for line in f
                        if line.strip() and not line.lstrip().startswith("#")
                    )
            except (OSError, UnicodeDecodeError) as e:
                log.error(f"[red]Could not read file {escape(source)}: {e}[/red]")
        else:
            lines.append(source.strip())

    items: dict[str, DownloadItem] = {}
    for line in lines:
        url, _, relative = line.partition(" ")
        if not url.startswith(("http://", "https://")):
            log.error(f"[red]Invalid or unsupported URL: {escape(url)}[/red]")
            continue
        try:
            destination = destination_for(url, output_dir, relative.strip() or None)
        except ValueError as e:
            log.error(f"[red]{escape(str(e))}[/red]")
            continue
        store_path = str(destination)
        if "|" in store_path or "|" in url:
            log.error(
                f"[red]Cannot track '{escape(url)}': '|' is not allowed in "
                "URLs or paths.[/red]"
            )
            continue
        items.setdefault(store_path, DownloadItem(url, store_path))

    if len(items) < len(lines):
        log.info(f"Dropped {len(lines) - len(items)} duplicate or invalid sources.")
    return list(items.values())


class DownloadManager:
    """
    Runs the bulk download pass with a bounded number of concurrent downloads,
    recording every failure in the ledger.
    """

    def __init__(
        self,
        config: AppConfig,
        fetcher: FileFetcher,
        ledger: FailedDownloadLedger,
        progress_manager: ProgressManager | None = None,
    ):
        self.config = config
        self.fetcher = fetcher
        self.ledger = ledger
        self.progress_manager = progress_manager
        self.stats = DownloadStats()
        self.semaphore = asyncio.Semaphore(config.max_workers)

    async def execute_downloads(self, items: list[DownloadItem]) -> DownloadStats:
        """Downloads all items concurrently and returns the session statistics."""
        if not items:
            log.info("No download sources provided. Nothing to do.")
            return self.stats

        if self.progress_manager:
            self.progress_manager.initialize_session(len(items))
        await asyncio.gather(*(self._worker(item) for item in items))
        return self.stats

    async def _worker(self, item: DownloadItem) -> None:
        async with self.semaphore:
            succeeded = await self.download_item(item)
        if self.progress_manager:
            self.progress_manager.advance(success=succeeded)

    async def download_item(self, item: DownloadItem) -> bool:
        """
        Downloads one item, recording it in the ledger if it fails.

        Returns:
            True if the file is in place afterwards, False otherwise.
        """
        try:
            result = await self.fetcher.fetch(item.url, item.store_path)
        except DownloadError as e:
            if isinstance(e, ProviderBlocked):
                self.stats.blocked += 1
            else:
                self.stats.failed += 1
            await self._record_failure(item)
            return False

        if result is FetchResult.ALREADY_PRESENT:
            self.stats.skipped_exists += 1
            log.info(
                f"[yellow]○ Skipping:[/yellow] [dim]{escape(item.store_path)}[/dim]"
                " (already exists)"
            )
            return True

        self.stats.downloaded += 1
        try:
            self.stats.total_size_downloaded += os.path.getsize(item.store_path)
        except OSError:
            pass
        return True

    async def _record_failure(self, item: DownloadItem) -> None:
        try:
            await self.ledger.append(LedgerEntry.fresh(item.store_path, item.url))
        except LedgerIOError as e:
            log.error(
                f"[red]✗ Could not record failed download of "
                f"{escape(item.store_path)}:[/red] {escape(str(e))}"
            )
