"""
Media Processing Layer.

This package is responsible for all media file operations, including
downloading and content validation.
"""

from .downloader import Downloader
from .integrity import ContentState, ContentValidator

__all__ = ["ContentState", "ContentValidator", "Downloader"]
