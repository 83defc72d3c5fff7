"""
Provides methods for checking the content of downloaded media files.
"""

import logging
import os
from enum import Enum
from pathlib import Path

from mutagen.flac import FLAC, FLACNoHeaderError
from mutagen.mp3 import MP3, HeaderNotFoundError

from asmr_dl.utils.path import resolve_existing

log = logging.getLogger(__name__)

# Body served by the edge provider with HTTP 200 when a client is rate limited.
PROVIDER_BLOCK_MARKER = b"error code: 1015"


class ContentState(Enum):
    """Result of inspecting a download destination."""

    MISSING = "missing"
    VALID = "valid"
    BLOCKED = "blocked"
    CORRUPT = "corrupt"


class ContentValidator:
    """
    Inspects files on disk for content that the transport layer reports as a
    success but which is not the requested media.
    """

    def __init__(
        self, marker: bytes = PROVIDER_BLOCK_MARKER, verify_audio: bool = False
    ):
        self.marker = marker
        self.verify_audio = verify_audio

    def is_provider_blocked(self, path: Path | str) -> bool:
        """Checks whether the file content is exactly the provider block page."""
        try:
            if os.path.getsize(path) != len(self.marker):
                return False
            with open(path, "rb") as f:
                return f.read(len(self.marker) + 1) == self.marker
        except OSError:
            return False

    def inspect(self, path: Path | str) -> ContentState:
        """
        Classifies a download destination.

        Args:
            path: Path to the (possibly missing) downloaded file.

        Returns:
            MISSING if nothing is there, BLOCKED if it holds the provider block
            page, CORRUPT if audio verification is enabled and fails, VALID
            otherwise.
        """
        path = resolve_existing(path)
        if not path.is_file():
            return ContentState.MISSING
        if self.is_provider_blocked(path):
            return ContentState.BLOCKED
        if self.verify_audio and not self.check_audio(path):
            return ContentState.CORRUPT
        return ContentState.VALID

    def check_audio(self, path: Path) -> bool:
        """Runs the mutagen check for known audio types; other files always pass."""
        suffix = path.suffix.lower()
        if suffix == ".mp3":
            return self.check_mp3(str(path))
        if suffix == ".flac":
            return self.check_flac(str(path))
        return True

    @staticmethod
    def check_flac(filepath: str) -> bool:
        """
        Performs a basic integrity check on a FLAC file.

        Checks if the file can be opened by mutagen and has valid stream info.
        """
        try:
            audio = FLAC(filepath)
            if audio.info and audio.info.length > 0:
                return True
            log.warning(
                f"FLAC integrity check failed for '{filepath}': No valid stream info."
            )
            return False
        except FLACNoHeaderError:
            log.warning(
                f"FLAC integrity check failed for '{filepath}': Missing FLAC header."
            )
            return False
        except Exception as e:
            log.debug(f"FLAC check failed for '{filepath}' with unexpected error: {e}")
            return False

    @staticmethod
    def check_mp3(filepath: str) -> bool:
        """
        Performs a basic integrity check on an MP3 file.

        Checks if the file can be opened by mutagen and has valid stream info.
        """
        try:
            audio = MP3(filepath)
            if audio.info and audio.info.length > 0:
                return True
            log.warning(
                f"MP3 integrity check failed for '{filepath}': No valid stream info."
            )
            return False
        except HeaderNotFoundError:
            log.warning(
                f"MP3 integrity check failed for '{filepath}': Missing MP3 header."
            )
            return False
        except Exception as e:
            log.debug(f"MP3 check failed for '{filepath}' with unexpected error: {e}")
            return False
