"""
Delivery channels shared by the email and SMS senders.

Every sender exposes ``async send(destination, message)`` and raises
``DeliveryFailed`` when the provider does not accept the message.  The
verification flow treats that as a reason to roll back the send.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from app.config import DELIVERY_TIMEOUT
from app.verification.errors import DeliveryFailed
from app.verification.flow import OutgoingMessage

logger = logging.getLogger(__name__)

_TELEGRAM_API = "https://api.telegram.org"
_TIMEOUT = httpx.Timeout(DELIVERY_TIMEOUT)


async def post_json(url: str, payload: dict, *, token: str | None = None) -> None:
    """POST a JSON payload, turning any transport or HTTP error into DeliveryFailed."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    try:
        # caps the whole call, httpx only limits each phase
        async with asyncio.timeout(DELIVERY_TIMEOUT):
            async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
                resp = await client.post(url, json=payload, headers=headers)
                resp.raise_for_status()
    except (httpx.HTTPError, TimeoutError) as exc:
        logger.exception("Delivery request to %s failed", url)
        raise DeliveryFailed(f"Delivery request failed: {exc}") from exc


class ConsoleSender:
    """Logs messages instead of sending them (development without credentials)."""

    def __init__(self, channel: str) -> None:
        self._channel = channel

    async def send(self, destination: str, message: OutgoingMessage) -> None:
        logger.info(
            "📨 [DEV] Would send %s to %s:\n  Subject: %s\n%s",
            self._channel,
            destination,
            message.subject or "-",
            message.body,
        )


class TelegramTestingSender:
    """
    Forwards verification messages to a Telegram chat.

    Only used in development so testers can receive codes for made-up
    addresses and numbers.  Links are defanged so Telegram does not
    unfurl (and thereby consume) one-time URLs.
    """

    def __init__(self, bot_token: str, chat_id: str, *, from_address: str = "") -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._from_address = from_address

    def _format(self, destination: str, message: OutgoingMessage) -> str:
        lines = []
        if self._from_address:
            lines.append(f"From: {self._from_address}")
        lines.append(f"To: {destination}")
        if message.subject:
            lines.append(f"Subject: {message.subject}")
        lines.append("")
        lines.append(message.body.replace("http", "hxxp"))
        return "\n".join(lines)

    async def send(self, destination: str, message: OutgoingMessage) -> None:
        await post_json(
            f"{_TELEGRAM_API}/bot{self._bot_token}/sendMessage",
            {"chat_id": self._chat_id, "text": self._format(destination, message)},
        )
        logger.info("Verification message for %s forwarded to testing receiver", destination)
