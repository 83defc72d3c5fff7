"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AsmrDlError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(AsmrDlError):
    """Raised for issues related to configuration loading or validation."""


class DownloadError(AsmrDlError):
    """Base class for failures of a single file download."""


class NetworkError(DownloadError):
    """Raised on connection or transport failures, including HTTP error statuses."""


class ContentLengthMismatch(DownloadError):
    """
    Raised when the received body does not match the advertised Content-Length.
    Triggers the plain-GET fallback inside the same attempt.
    """


class WriteError(DownloadError):
    """Raised when the destination file cannot be written to disk."""


class ProviderBlocked(DownloadError):
    """
    Raised when the provider answered with its block page (HTTP 200 with an
    'error code: 1015' body) instead of the requested file.
    """


class CorruptContent(DownloadError):
    """Raised when a downloaded media file fails the optional audio integrity check."""


class LedgerError(AsmrDlError):
    """Base class for failed-download ledger errors."""


class LedgerIOError(LedgerError):
    """Raised when the ledger cannot be read, copied, truncated or rewritten."""


class LedgerParseError(LedgerError):
    """Raised when a ledger line cannot be parsed into an entry."""

    def __init__(self, line: str, line_number: int | None = None):
        self.line = line
        self.line_number = line_number
        where = f" at line {line_number}" if line_number is not None else ""
        super().__init__(f"Malformed ledger line{where}: {line!r}")
