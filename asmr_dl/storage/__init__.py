"""
Storage Layer.

This package handles all data persistence, including the configuration file
and the ledger of failed downloads.
"""

from .config_manager import ConfigManager
from .ledger import FailedDownloadLedger, LedgerEntry

__all__ = ["ConfigManager", "FailedDownloadLedger", "LedgerEntry"]
