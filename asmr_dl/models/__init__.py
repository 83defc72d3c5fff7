"""
Data Models Layer.

This package contains the models that define the core data structures
used throughout the application, such as configuration and statistics.
"""

from .config import AppConfig
from .stats import DownloadStats, ReconcileReport

__all__ = ["AppConfig", "DownloadStats", "ReconcileReport"]
