import os
import unicodedata

import pytest

from asmr_dl.utils.formatting import (
    current_timestamp,
    format_duration,
    format_size,
    mosaic,
)
from asmr_dl.utils.path import (
    copy_file,
    destination_for,
    filename_from_url,
    resolve_existing,
)


def test_filename_from_url_unquotes_and_sanitizes():
    assert filename_from_url("https://example.com/a/%E9%9F%B3%E5%A3%B0.mp3?x=1") == (
        "音声.mp3"
    )
    assert filename_from_url("https://example.com/") == "download"


def test_destination_for_keeps_relative_paths(tmp_path):
    assert destination_for("https://example.com/x.mp3", tmp_path) == (
        tmp_path / "x.mp3"
    )
    assert destination_for(
        "https://example.com/x.mp3", tmp_path, "/album/01.mp3"
    ) == (tmp_path / "album" / "01.mp3")


@pytest.mark.parametrize("relative", ["../x.mp3", "album/../../x.mp3", "..\\x.mp3"])
def test_destination_for_rejects_parent_references(tmp_path, relative):
    with pytest.raises(ValueError):
        destination_for("https://example.com/x.mp3", tmp_path, relative)


def test_copy_file_keeps_content_and_mode(tmp_path):
    src = tmp_path / "src"
    src.write_bytes(b"payload")
    os.chmod(src, 0o600)
    dst = tmp_path / "dst"

    copy_file(src, dst)

    assert dst.read_bytes() == b"payload"
    assert (dst.stat().st_mode & 0o777) == 0o600


def test_resolve_existing_matches_decomposed_names(tmp_path):
    nfd_name = unicodedata.normalize("NFD", "ボイス.mp3")
    (tmp_path / nfd_name).write_bytes(b"x")
    nfc_path = tmp_path / unicodedata.normalize("NFC", "ボイス.mp3")

    assert resolve_existing(nfc_path).name == nfd_name
    assert resolve_existing(nfc_path).read_bytes() == b"x"
    assert not resolve_existing(tmp_path / "other.mp3").exists()


def test_mosaic_masks_every_character():
    assert mosaic("https://hook") == "************"
    assert mosaic("abc", "#") == "###"
    assert mosaic("") == ""


def test_formatting_helpers():
    assert format_size(0) == "0 B"
    assert format_size(1536) == "1.5 KB"
    assert format_duration(3725) == "1h 2m 5s"
    assert format_duration(0) == "0s"
    assert len(current_timestamp()) == len("2024-01-01 12:30:00")
