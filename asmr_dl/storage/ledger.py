"""
Manages the plain-text ledger of failed downloads.

Each line records one download that still needs attention, in the form
``timestamp|store_path|source_url``. The bulk download pass appends to it and
the retry reconciler rewrites it with whatever is still unresolved.
"""

import asyncio
import logging
import os
import shutil
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

import aiofiles

from asmr_dl.exceptions import LedgerIOError, LedgerParseError
from asmr_dl.models.config import DEFAULT_LEDGER_NAME
from asmr_dl.utils.formatting import current_timestamp
from asmr_dl.utils.path import copy_file

log = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"


@dataclass(frozen=True)
class LedgerEntry:
    """One failed download: when it failed, where it goes and where it comes from."""

    timestamp: str
    store_path: str
    source_url: str

    def __post_init__(self):
        for name in ("timestamp", "store_path", "source_url"):
            value = getattr(self, name)
            if not value:
                raise ValueError(f"Ledger entry field '{name}' cannot be empty.")
            if FIELD_SEPARATOR in value or "\n" in value or "\r" in value:
                raise ValueError(
                    f"Ledger entry field '{name}' cannot contain "
                    f"'{FIELD_SEPARATOR}' or line breaks: {value!r}"
                )

    @classmethod
    def fresh(cls, store_path: str, source_url: str) -> "LedgerEntry":
        """Creates an entry stamped with the current local time."""
        return cls(current_timestamp(), store_path, source_url)

    @classmethod
    def from_line(cls, line: str, line_number: int | None = None) -> "LedgerEntry":
        """
        Parses a single ledger line.

        Raises:
            LedgerParseError: If the line does not hold three non-empty fields.
        """
        parts = line.rstrip("\r\n").split(FIELD_SEPARATOR)
        if len(parts) != 3:
            raise LedgerParseError(line, line_number)
        try:
            return cls(*(part.strip() for part in parts))
        except ValueError as e:
            raise LedgerParseError(line, line_number) from e

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the download, ignoring when it failed."""
        return self.store_path, self.source_url

    def to_line(self) -> str:
        return FIELD_SEPARATOR.join((self.timestamp, self.store_path, self.source_url))

    def refreshed(self) -> "LedgerEntry":
        """Returns a copy of this entry with the current timestamp."""
        return LedgerEntry.fresh(self.store_path, self.source_url)


class FailedDownloadLedger:
    """
    An append-only text ledger of failed downloads, owned by a single process.

    Appends are serialized through an asyncio lock so that any number of
    concurrent download tasks can record failures. Snapshots and rewrites take
    the same lock, so a rewrite never interleaves with an append.
    """

    def __init__(self, path: Path | str = DEFAULT_LEDGER_NAME):
        self.path = Path(path)
        self._lock = asyncio.Lock()
        try:
            if self.path.parent != Path("."):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as e:
            raise LedgerIOError(
                f"Could not open failed-download ledger '{self.path}': {e}"
            ) from e

    @property
    def snapshot_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    async def append(self, entry: LedgerEntry) -> None:
        """Appends one entry to the ledger."""
        async with self._lock:
            try:
                async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                    await f.write(entry.to_line() + "\n")
            except OSError as e:
                raise LedgerIOError(
                    f"Could not append to ledger '{self.path}': {e}"
                ) from e
        log.debug(f"Recorded failed download in ledger: {entry.store_path}")

    async def snapshot(self) -> Path:
        """
        Copies the ledger to a temporary file, preserving its permissions.

        Returns:
            The path of the snapshot copy.
        """
        async with self._lock:
            try:
                await asyncio.to_thread(copy_file, self.path, self.snapshot_path)
            except OSError as e:
                raise LedgerIOError(
                    f"Could not copy ledger '{self.path}' to "
                    f"'{self.snapshot_path}': {e}"
                ) from e
        return self.snapshot_path

    async def truncate(self) -> None:
        """Empties the ledger in place."""
        async with self._lock:
            await asyncio.to_thread(self._truncate_sync)

    def _truncate_sync(self) -> None:
        try:
            os.truncate(self.path, 0)
        except OSError as e:
            raise LedgerIOError(f"Could not truncate ledger '{self.path}': {e}") from e

    async def rewrite(
        self, entries: list[LedgerEntry], preserve_from: int | None = None
    ) -> None:
        """
        Replaces the ledger content with the given entries.

        Args:
            entries: The entries that make up the new ledger.
            preserve_from: Byte offset into the current ledger. Anything after
                it was appended since the snapshot was taken and is kept after
                the new entries.
        """
        async with self._lock:
            await asyncio.to_thread(self._rewrite_sync, entries, preserve_from)

    def _rewrite_sync(
        self, entries: list[LedgerEntry], preserve_from: int | None
    ) -> None:
        # A symlinked ledger is rewritten at its target, keeping the link.
        target = self.path.resolve()
        replacement = target.with_name(target.name + ".new")
        try:
            tail = b""
            if preserve_from is not None:
                with open(target, "rb") as f:
                    f.seek(preserve_from)
                    tail = f.read()
            content = "".join(entry.to_line() + "\n" for entry in entries)
            with open(replacement, "wb") as f:
                f.write(content.encode("utf-8") + tail)
                f.flush()
                os.fsync(f.fileno())
            shutil.copymode(target, replacement)
            os.replace(replacement, target)
        except OSError as e:
            with suppress(OSError):
                os.remove(replacement)
            raise LedgerIOError(
                f"Could not write {len(entries)} entries back to ledger "
                f"'{self.path}': {e}"
            ) from e

    def read_lines(self, path: Path | None = None) -> list[str]:
        """Returns the non-blank lines of the ledger (or of a snapshot of it)."""
        source = path or self.path
        try:
            with open(source, encoding="utf-8", errors="replace") as f:
                return [line.rstrip("\r\n") for line in f if line.strip("\r\n ")]
        except OSError as e:
            raise LedgerIOError(f"Could not read ledger '{source}': {e}") from e

    def read_entries(
        self, path: Path | None = None
    ) -> tuple[list[LedgerEntry], list[LedgerParseError]]:
        """
        Parses the ledger (or a snapshot of it).

        Returns:
            A tuple of the parsed entries in file order and the parse errors for
            lines that could not be read.
        """
        entries, malformed = [], []
        for number, line in enumerate(self.read_lines(path), 1):
            try:
                entries.append(LedgerEntry.from_line(line, number))
            except LedgerParseError as e:
                malformed.append(e)
        return entries, malformed

    def has_pending_entries(self) -> bool:
        """Checks whether the ledger holds at least one non-blank line."""
        try:
            return bool(self.read_lines())
        except LedgerIOError as e:
            log.error(str(e))
            return False
