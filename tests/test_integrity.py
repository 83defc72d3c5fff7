import unicodedata

from asmr_dl.media.integrity import (
    PROVIDER_BLOCK_MARKER,
    ContentState,
    ContentValidator,
)


def test_marker_body_is_reported_as_blocked(tmp_path) -> None:
    path = tmp_path / "track.mp3"
    path.write_bytes(b"error code: 1015")
    validator = ContentValidator()

    assert validator.is_provider_blocked(path)
    assert validator.inspect(path) is ContentState.BLOCKED


def test_other_content_is_valid(tmp_path) -> None:
    validator = ContentValidator()
    for name, body in [
        ("a.mp3", b"ID3 real audio"),
        ("b.mp3", PROVIDER_BLOCK_MARKER + b"\n"),
        ("c.mp3", b"error code: 1016"),
        ("d.mp3", b""),
    ]:
        path = tmp_path / name
        path.write_bytes(body)
        assert validator.inspect(path) is ContentState.VALID, name


def test_missing_file(tmp_path) -> None:
    assert ContentValidator().inspect(tmp_path / "nope.mp3") is ContentState.MISSING


def test_directory_is_not_a_download(tmp_path) -> None:
    (tmp_path / "dir.mp3").mkdir()

    assert ContentValidator().inspect(tmp_path / "dir.mp3") is ContentState.MISSING


def test_nfd_named_file_matches_nfc_path(tmp_path) -> None:
    name = "ボイス.mp3"
    (tmp_path / unicodedata.normalize("NFD", name)).write_bytes(b"audio")

    state = ContentValidator().inspect(tmp_path / unicodedata.normalize("NFC", name))

    assert state is ContentState.VALID


def test_audio_verification_flags_unparseable_media(tmp_path) -> None:
    validator = ContentValidator(verify_audio=True)
    bogus_mp3 = tmp_path / "a.mp3"
    bogus_mp3.write_bytes(b"not really an mp3 file")
    bogus_flac = tmp_path / "a.flac"
    bogus_flac.write_bytes(b"not really a flac file")
    other = tmp_path / "notes.txt"
    other.write_bytes(b"plain text")

    assert validator.inspect(bogus_mp3) is ContentState.CORRUPT
    assert validator.inspect(bogus_flac) is ContentState.CORRUPT
    assert validator.inspect(other) is ContentState.VALID


def test_audio_verification_still_reports_block_page(tmp_path) -> None:
    path = tmp_path / "a.mp3"
    path.write_bytes(PROVIDER_BLOCK_MARKER)

    assert ContentValidator(verify_audio=True).inspect(path) is ContentState.BLOCKED
