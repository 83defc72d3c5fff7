"""
Utilities for handling file paths, existence checks and download destinations.
"""

import os
import shutil
import unicodedata
from pathlib import Path
from urllib.parse import unquote, urlparse

from pathvalidate import sanitize_filename, sanitize_filepath


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def _nfc(value: str) -> str:
    return unicodedata.normalize("NFC", value)


def resolve_existing(path: Path | str) -> Path:
    """
    Returns the on-disk spelling of a path whose name may differ only in Unicode
    normalization, or the NFC form of the path if nothing matches.
    """
    path = Path(_nfc(str(path)))
    if path.exists():
        return path
    try:
        for name in os.listdir(path.parent):
            if _nfc(name) == path.name:
                return path.parent / name
    except OSError:
        pass
    return path


def copy_file(src: Path | str, dst: Path | str) -> None:
    """
    Copies a file's content and permission bits, flushing the copy to disk.

    Raises:
        OSError: If the source cannot be read or the destination written.
    """
    with open(src, "rb") as fsrc, open(dst, "wb") as fdst:
        shutil.copyfileobj(fsrc, fdst)
        fdst.flush()
        os.fsync(fdst.fileno())
    shutil.copymode(src, dst)


def filename_from_url(url: str, default: str = "download") -> str:
    """Derives a safe file name from the last path segment of a URL."""
    segment = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    name = sanitize_filename(segment, platform="auto")
    return name or default


def destination_for(
    url: str, output_dir: Path, relative_path: str | None = None
) -> Path:
    """
    Builds the destination path of a download inside the output directory.

    An explicit relative path is sanitized and kept; otherwise the file name is
    taken from the URL.
    """
    if relative_path:
        relative = relative_path.replace("\\", "/").lstrip("/")
        if ".." in Path(relative).parts:
            raise ValueError(
                f"Destination cannot leave the output directory: {relative_path}"
            )
        relative = sanitize_filepath(relative, platform="auto")
        return output_dir / relative
    return output_dir / filename_from_url(url)
