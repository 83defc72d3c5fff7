"""
Core application engine for the download and retry passes.

The `DownloadManager` fans the initial download pass out over a bounded
number of workers, and the `RetryReconciler` replays the failed-download
ledger afterwards. Both delegate each individual file to the `FileFetcher`.
"""
