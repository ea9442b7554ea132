"""
Test doubles for the verification collaborators.

Nothing here talks to a real mail server, SMS gateway or clock.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta

from app.verification.errors import DeliveryFailed
from app.verification.flow import OutgoingMessage


class RecordingSender:
    """Keeps every message instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, OutgoingMessage]] = []

    async def send(self, destination: str, message: OutgoingMessage) -> None:
        self.sent.append((destination, message))

    @property
    def last(self) -> OutgoingMessage:
        assert self.sent, "nothing was sent"
        return self.sent[-1][1]

    def last_token(self) -> str:
        """Token query parameter of the most recent verification link."""
        match = re.search(r"token=([A-Za-z0-9_\-]+)", self.last.body)
        assert match, f"no token in {self.last.body!r}"
        return match.group(1)

    def last_code(self) -> str:
        """6-digit code from the most recent SMS."""
        match = re.search(r"\b(\d{6})\b", self.last.body)
        assert match, f"no code in {self.last.body!r}"
        return match.group(1)


class SlowSender(RecordingSender):
    """A provider that takes ``delay`` seconds to accept each message."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.started = asyncio.Event()

    async def send(self, destination: str, message: OutgoingMessage) -> None:
        self.started.set()
        await asyncio.sleep(self.delay)
        await super().send(destination, message)


class FailingSender:
    """Simulates a provider outage."""

    def __init__(self) -> None:
        self.calls = 0

    async def send(self, destination: str, message: OutgoingMessage) -> None:
        self.calls += 1
        raise DeliveryFailed("provider unavailable")


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


async def secret_as_body(conn, secret: str) -> OutgoingMessage:
    """Composer that puts the bare secret in the message body."""
    return OutgoingMessage(subject=None, body=secret)
