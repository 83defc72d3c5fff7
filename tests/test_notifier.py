import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from asmr_dl.notify import WebhookNotifier
from asmr_dl.notify.webhook import MAX_CONTENT_LENGTH


def _build_app(received: list, status: int = 204) -> web.Application:
    async def hook(request):
        received.append(await request.json())
        return web.Response(status=status)

    app = web.Application()
    app.router.add_post("/hook", hook)
    return app


@pytest.mark.asyncio
async def test_unconfigured_notifier_accepts_messages():
    notifier = WebhookNotifier("")

    assert not notifier.enabled
    assert await notifier.send("nothing happens") is True


@pytest.mark.asyncio
async def test_posts_username_and_content():
    received: list = []
    async with TestServer(_build_app(received)) as server:
        notifier = WebhookNotifier(str(server.make_url("/hook")), username="bot")
        delivered = await notifier.send("File: a.mp3 failed to download")

    assert delivered is True
    assert received == [
        {"username": "bot", "content": "File: a.mp3 failed to download"}
    ]


@pytest.mark.asyncio
async def test_rejected_message_returns_false():
    received: list = []
    async with TestServer(_build_app(received, status=500)) as server:
        notifier = WebhookNotifier(str(server.make_url("/hook")))
        assert await notifier.send("hello") is False


@pytest.mark.asyncio
async def test_unreachable_webhook_returns_false():
    notifier = WebhookNotifier("http://127.0.0.1:1/hook", timeout=2)

    assert await notifier.send("hello") is False


@pytest.mark.asyncio
async def test_long_messages_are_truncated():
    received: list = []
    async with TestServer(_build_app(received)) as server:
        notifier = WebhookNotifier(str(server.make_url("/hook")))
        await notifier.send("x" * 5000)

    content = received[0]["content"]
    assert len(content) == MAX_CONTENT_LENGTH
    assert content.endswith("…")


@pytest.mark.asyncio
async def test_undecodable_rejection_body_returns_false():
    async def garbled(request):
        return web.Response(
            status=404,
            body=b"\xff\xfe\xfa not found",
            content_type="text/plain",
            charset="utf-8",
        )

    app = web.Application()
    app.router.add_post("/hook", garbled)
    async with TestServer(app) as server:
        notifier = WebhookNotifier(str(server.make_url("/hook")))
        assert await notifier.send("hello") is False
