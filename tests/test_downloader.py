import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from asmr_dl.exceptions import ContentLengthMismatch, NetworkError, WriteError
from asmr_dl.media.downloader import DEFAULT_USER_AGENT, Downloader

BODY = b"\xff\xfb" + b"A" * 300_000


def _build_app(seen_headers: list) -> web.Application:
    async def track(request):
        seen_headers.append(dict(request.headers))
        return web.Response(body=BODY, content_type="audio/mpeg")

    async def missing(request):
        return web.Response(status=404, text="not found")

    app = web.Application()
    app.router.add_get("/a.mp3", track)
    app.router.add_get("/missing.mp3", missing)
    return app


@pytest.mark.asyncio
async def test_download_streams_body_to_destination(tmp_path):
    destination = tmp_path / "a.mp3"
    async with (
        TestServer(_build_app([])) as server,
        aiohttp.ClientSession() as session,
    ):
        written = await Downloader(session=session).download_file(
            str(server.make_url("/a.mp3")), str(destination)
        )

    assert written == len(BODY)
    assert destination.read_bytes() == BODY
    assert not (tmp_path / "a.mp3.part").exists()


@pytest.mark.asyncio
async def test_http_error_raises_network_error_and_leaves_nothing(tmp_path):
    destination = tmp_path / "missing.mp3"
    async with (
        TestServer(_build_app([])) as server,
        aiohttp.ClientSession() as session,
    ):
        with pytest.raises(NetworkError):
            await Downloader(session=session).download_file(
                str(server.make_url("/missing.mp3")), str(destination)
            )

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_unreachable_host_raises_network_error(tmp_path):
    async with aiohttp.ClientSession() as session:
        with pytest.raises(NetworkError):
            await Downloader(session=session).download_file(
                "http://127.0.0.1:1/a.mp3", str(tmp_path / "a.mp3")
            )

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_unwritable_destination_raises_write_error(tmp_path):
    destination = tmp_path / "no-such-dir" / "a.mp3"
    async with (
        TestServer(_build_app([])) as server,
        aiohttp.ClientSession() as session,
    ):
        with pytest.raises(WriteError):
            await Downloader(session=session).download_file(
                str(server.make_url("/a.mp3")), str(destination)
            )

    assert not destination.exists()


@pytest.mark.asyncio
async def test_length_mismatch_falls_back_to_plain_get(tmp_path, monkeypatch):
    seen_headers: list = []

    async def mismatching_stream(self, url, part_path):
        with open(part_path, "wb") as f:
            f.write(b"partial")
        raise ContentLengthMismatch("Content-Length is 300002 but 7 bytes")

    monkeypatch.setattr(Downloader, "_stream_to_file", mismatching_stream)
    destination = tmp_path / "a.mp3"
    async with (
        TestServer(_build_app(seen_headers)) as server,
        aiohttp.ClientSession() as session,
    ):
        await Downloader(session=session).download_file(
            str(server.make_url("/a.mp3")), str(destination)
        )

    assert destination.read_bytes() == BODY
    assert seen_headers[0]["User-Agent"] == DEFAULT_USER_AGENT


@pytest.mark.asyncio
async def test_failed_fallback_removes_partial_file(tmp_path, monkeypatch):
    async def mismatching_stream(self, url, part_path):
        with open(part_path, "wb") as f:
            f.write(b"partial")
        raise ContentLengthMismatch("short body")

    monkeypatch.setattr(Downloader, "_stream_to_file", mismatching_stream)
    destination = tmp_path / "missing.mp3"
    async with (
        TestServer(_build_app([])) as server,
        aiohttp.ClientSession() as session,
    ):
        with pytest.raises(NetworkError):
            await Downloader(session=session).download_file(
                str(server.make_url("/missing.mp3")), str(destination)
            )

    assert list(tmp_path.iterdir()) == []


def _short_body_app(seen_headers: list, short_requests: int) -> web.Application:
    """Serves BODY, but the first ``short_requests`` responses stop halfway."""

    async def track(request):
        seen_headers.append(dict(request.headers))
        if len(seen_headers) > short_requests:
            return web.Response(body=BODY, content_type="audio/mpeg")
        response = web.StreamResponse()
        response.content_type = "audio/mpeg"
        response.content_length = len(BODY)
        await response.prepare(request)
        await response.write(BODY[: len(BODY) // 2])
        request.transport.close()
        return response

    app = web.Application()
    app.router.add_get("/a.mp3", track)
    return app


@pytest.mark.asyncio
async def test_short_body_is_fetched_again_with_plain_get(tmp_path):
    seen_headers: list = []
    destination = tmp_path / "a.mp3"
    async with (
        TestServer(_short_body_app(seen_headers, short_requests=1)) as server,
        aiohttp.ClientSession() as session,
    ):
        written = await Downloader(session=session).download_file(
            str(server.make_url("/a.mp3")), str(destination)
        )

    assert written == len(BODY)
    assert destination.read_bytes() == BODY
    assert len(seen_headers) == 2
    assert seen_headers[1]["User-Agent"] == DEFAULT_USER_AGENT
    assert not (tmp_path / "a.mp3.part").exists()


@pytest.mark.asyncio
async def test_short_body_on_both_attempts_leaves_no_fragment(tmp_path):
    seen_headers: list = []
    destination = tmp_path / "a.mp3"
    async with (
        TestServer(_short_body_app(seen_headers, short_requests=2)) as server,
        aiohttp.ClientSession() as session,
    ):
        with pytest.raises(NetworkError):
            await Downloader(session=session).download_file(
                str(server.make_url("/a.mp3")), str(destination)
            )

    assert len(seen_headers) == 2
    assert list(tmp_path.iterdir()) == []
