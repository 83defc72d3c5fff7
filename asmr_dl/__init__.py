"""
asmr-dl: a concurrent bulk media downloader with a persistent retry ledger.
"""

__version__ = "1.0.0"
