"""Shared fixtures."""

import pytest

from asmr_dl.core.fetcher import FileFetcher
from asmr_dl.media import ContentValidator
from asmr_dl.storage.ledger import FailedDownloadLedger
from tests.helpers import RecordingNotifier


@pytest.fixture
def ledger(tmp_path) -> FailedDownloadLedger:
    return FailedDownloadLedger(tmp_path / "failed-download.txt")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_fetcher(notifier):
    def _make(downloader, verify_audio: bool = False) -> FileFetcher:
        return FileFetcher(
            downloader,
            ContentValidator(verify_audio=verify_audio),
            notifier,
            backoff_seconds=0,
        )

    return _make
