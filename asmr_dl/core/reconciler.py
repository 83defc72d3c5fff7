"""
Replays the failed-download ledger with a bounded number of retries per entry.

A pass snapshots the ledger, retries every recorded download in file order and
finally rewrites the ledger so that it holds only the downloads that are still
failing, each with a fresh timestamp.
"""

import asyncio
import logging
import os

from rich.markup import escape

from asmr_dl.exceptions import DownloadError, LedgerIOError
from asmr_dl.models.stats import ReconcileReport
from asmr_dl.storage.ledger import FailedDownloadLedger, LedgerEntry

from .fetcher import FetchResult, FileFetcher

log = logging.getLogger(__name__)


class RetryReconciler:
    """
    Runs reconciliation passes over a failed-download ledger.

    Entries are processed strictly one after another and so are the retries of
    each entry. Every failed attempt consumes one unit of the retry budget,
    whatever kind of failure it was.
    """

    def __init__(
        self,
        ledger: FailedDownloadLedger,
        fetcher: FileFetcher,
        max_retry: int = 3,
    ):
        if max_retry < 1:
            raise ValueError("max_retry must be a positive integer")
        self.ledger = ledger
        self.fetcher = fetcher
        self.max_retry = max_retry

    async def reconcile(self) -> ReconcileReport:
        """
        Runs one reconciliation pass.

        Returns:
            Counts of resolved and still-failing entries.

        Raises:
            LedgerIOError: If the ledger cannot be snapshotted, read or rewritten,
                or the snapshot cannot be removed. The live ledger keeps its
                previous content in all of these cases.
        """
        log.info("[cyan]Retrying downloads that failed previously, please wait...[/cyan]")
        report = ReconcileReport()

        try:
            snapshot = await self.ledger.snapshot()
        except LedgerIOError as e:
            log.error(f"[red]✗ Retry pass aborted:[/red] {escape(str(e))}")
            raise

        try:
            snapshot_size = snapshot.stat().st_size
            entries, malformed = await asyncio.to_thread(
                self.ledger.read_entries, snapshot
            )
        except (OSError, LedgerIOError) as e:
            log.error(f"[red]✗ Retry pass aborted:[/red] {escape(str(e))}")
            await asyncio.to_thread(self._discard_snapshot_quietly, snapshot)
            if isinstance(e, LedgerIOError):
                raise
            raise LedgerIOError(f"Could not read ledger snapshot: {e}") from e

        for error in malformed:
            report.malformed += 1
            message = f"Skipping unreadable failed-download record: {error}"
            log.warning(f"[yellow]{escape(message)}[/yellow]")
            await self.fetcher.notify(message)

        pending = self._deduplicate(entries, report)
        report.total = len(pending)

        remaining: list[LedgerEntry] = []
        for index, entry in enumerate(pending, 1):
            if not await self._replay(index, entry, report):
                remaining.append(entry.refreshed())
        report.still_failing = len(remaining)

        await self._commit(snapshot, remaining, snapshot_size)

        summary = (
            f"Failed-download retry finished: {report.resolved} resolved, "
            f"{report.still_failing} still failing."
        )
        if report.clean:
            log.info(f"[green]✓ {summary}[/green]")
        else:
            log.warning(f"[yellow]{summary}[/yellow]")
        await self.fetcher.notify(summary)
        return report

    @staticmethod
    def _deduplicate(
        entries: list[LedgerEntry], report: ReconcileReport
    ) -> list[LedgerEntry]:
        """Keeps the first record of every (store_path, source_url) pair."""
        unique: dict[tuple[str, str], LedgerEntry] = {}
        for entry in entries:
            if entry.key in unique:
                report.duplicates += 1
                continue
            unique[entry.key] = entry
        if report.duplicates:
            log.debug(f"Collapsed {report.duplicates} duplicate ledger records.")
        return list(unique.values())

    async def _replay(
        self, index: int, entry: LedgerEntry, report: ReconcileReport
    ) -> bool:
        """Retries one entry until it resolves or the budget is spent."""
        for attempt in range(1, self.max_retry + 1):
            report.attempts += 1
            log.info(
                f"[dim][{index}/{report.total}] attempt {attempt}/{self.max_retry}:"
                f"[/dim] {escape(entry.store_path)}"
            )
            try:
                result = await self.fetcher.fetch(entry.source_url, entry.store_path)
            except DownloadError:
                retries_left = self.max_retry - attempt
                if retries_left > 0:
                    message = (
                        "Retrying failed download again "
                        f"(retries left: {retries_left})..."
                    )
                    log.info(message)
                    await self.fetcher.notify(message)
                continue

            if result is FetchResult.ALREADY_PRESENT:
                report.already_present += 1
            report.resolved += 1
            return True
        return False

    async def _commit(
        self, snapshot, remaining: list[LedgerEntry], snapshot_size: int
    ) -> None:
        try:
            await asyncio.to_thread(os.remove, snapshot)
        except OSError as e:
            log.error(
                f"[red]✗ Could not delete ledger snapshot '{escape(str(snapshot))}':"
                f"[/red] {escape(str(e))}. The ledger was left unchanged."
            )
            raise LedgerIOError(f"Could not delete ledger snapshot: {e}") from e

        try:
            await self.ledger.rewrite(remaining, preserve_from=snapshot_size)
        except LedgerIOError as e:
            log.error(f"[red]✗ Could not update the ledger:[/red] {escape(str(e))}")
            raise

    @staticmethod
    def _discard_snapshot_quietly(snapshot) -> None:
        try:
            os.remove(snapshot)
        except FileNotFoundError:
            pass
        except OSError as e:
            log.error(f"Could not delete ledger snapshot '{snapshot}': {e}")
