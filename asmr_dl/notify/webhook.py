"""
Sends status messages to a Discord-compatible webhook.
"""

import asyncio
import logging

import aiohttp

log = logging.getLogger(__name__)

DEFAULT_USERNAME = "ASMR Downloader"
MAX_CONTENT_LENGTH = 2000  # Discord rejects longer messages


class WebhookNotifier:
    """
    Posts plain-text messages to a webhook.

    An unconfigured notifier accepts every message and sends nothing. Delivery
    failures are logged and reported through the return value, never raised.
    """

    def __init__(
        self,
        url: str = "",
        username: str = DEFAULT_USERNAME,
        timeout: float = 10,
    ):
        self.url = (url or "").strip()
        self.username = username or DEFAULT_USERNAME
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send(self, message: str) -> bool:
        """
        Sends a message to the webhook.

        Returns:
            True if the message was delivered or no webhook is configured,
            False if delivery failed.
        """
        if not self.enabled:
            return True

        if len(message) > MAX_CONTENT_LENGTH:
            message = message[: MAX_CONTENT_LENGTH - 1] + "…"
        payload = {"username": self.username, "content": message}

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with (
                aiohttp.ClientSession(timeout=timeout, trust_env=True) as session,
                session.post(self.url, json=payload) as resp,
            ):
                if resp.status >= 300:
                    body = await resp.text(errors="replace")
                    log.error(
                        f"Webhook rejected message (status {resp.status}): "
                        f"{body[:200]}"
                    )
                    return False
                return True
        except (
            aiohttp.ClientError,
            asyncio.TimeoutError,
            UnicodeDecodeError,
            LookupError,
        ) as e:
            log.error(f"Failed to send webhook notification: {e or type(e).__name__}")
            return False
