"""
Dataclasses for tracking download and reconciliation statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass
class DownloadStats:
    """Tracks statistics for a bulk download session."""

    downloaded: int = 0
    skipped_exists: int = 0
    failed: int = 0
    blocked: int = 0
    total_size_downloaded: int = 0
    started_at: float = field(default_factory=time.monotonic, repr=False)

    @property
    def processed(self) -> int:
        return self.downloaded + self.skipped_exists + self.failed + self.blocked

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass over the failed-download ledger."""

    total: int = 0
    resolved: int = 0
    already_present: int = 0
    still_failing: int = 0
    duplicates: int = 0
    malformed: int = 0
    attempts: int = 0

    @property
    def clean(self) -> bool:
        """True when nothing is left for a future pass."""
        return self.still_failing == 0
