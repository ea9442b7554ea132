"""
Verification flow: send a secret to a subject, then accept it back once.

Sending
    check the send limit → generate a secret → store it → deliver it →
    record the attempt.  All of it runs in one transaction, so a delivery
    failure leaves neither a live code nor an attempt behind.

Presenting
    check the presentation limit → record the attempt → look up the live
    code → reject if missing / expired / used / different → otherwise mark
    it used and run the caller's side effect.  The attempt row is committed
    even when the presentation is rejected, so wrong guesses count against
    the limit.
"""

from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

import aiosqlite

from app.db import Database, utcnow
from app.verification.codes import CodeRecord, CodeStore
from app.verification.errors import (
    CodeAlreadyUsed,
    CodeExpired,
    CodeNotFound,
    InvalidCode,
    RateLimited,
    VerificationError,
)
from app.verification.ledger import AttemptLedger
from app.verification.rate_limiter import RateLimitPolicy, next_available_at
from app.verification.subjects import AttemptKind, Subject


@dataclass(frozen=True)
class OutgoingMessage:
    subject: str | None
    body: str


class Sender(Protocol):
    """Delivers a message to an email address or phone number."""

    async def send(self, destination: str, message: OutgoingMessage) -> None: ...


@dataclass(frozen=True)
class Channel:
    """Everything that differs between the email and the phone flow."""

    name: str
    send_kind: AttemptKind
    present_kind: AttemptKind
    send_policy: RateLimitPolicy
    present_policy: RateLimitPolicy
    max_age: timedelta
    generate_secret: Callable[[], str]
    # Whether the stored aux value has to match the one presented with the code.
    match_aux: bool = False


# Builds the message for a freshly generated secret. Runs inside the send
# transaction, so it may read through the connection it is given.
Composer = Callable[[aiosqlite.Connection, str], Awaitable[OutgoingMessage]]

# Applied inside the presentation transaction after the code is marked used.
OnVerified = Callable[[aiosqlite.Connection, CodeRecord], Awaitable[None]]


class VerificationFlow:
    def __init__(
        self,
        db: Database,
        channel: Channel,
        sender: Sender,
        *,
        ledger: AttemptLedger | None = None,
        codes: CodeStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._channel = channel
        self._sender = sender
        self._ledger = ledger or AttemptLedger()
        self._codes = codes or CodeStore()
        self._clock = clock

    @property
    def channel(self) -> Channel:
        return self._channel

    async def _check_limit(
        self,
        conn: aiosqlite.Connection,
        subject: Subject,
        kind: AttemptKind,
        policy: RateLimitPolicy,
        now: datetime,
    ) -> None:
        attempts = await self._ledger.list_since(conn, subject, kind, now - policy.longest)
        retry_at = next_available_at(attempts, policy, now)
        if retry_at is not None:
            raise RateLimited(retry_at)

    async def request_send(
        self,
        subject: Subject,
        destination: str,
        compose: Composer,
        *,
        aux: str | None = None,
    ) -> CodeRecord:
        """Generate, store and deliver a new secret for ``subject``."""
        channel = self._channel
        async with self._db.transaction() as conn:
            now = self._clock()
            await self._check_limit(conn, subject, channel.send_kind, channel.send_policy, now)

            secret = channel.generate_secret()
            record = await self._codes.set_code(conn, subject, secret, now, aux=aux)
            message = await compose(conn, secret)
            await self._sender.send(destination, message)
            await self._ledger.record(conn, subject, channel.send_kind, now)
        return record

    async def present_code(
        self,
        subject: Subject,
        candidate: str,
        *,
        aux: str | None = None,
        on_verified: OnVerified | None = None,
    ) -> CodeRecord:
        """Consume the live code for ``subject`` if ``candidate`` matches it."""
        channel = self._channel
        rejection: VerificationError | None = None

        async with self._db.transaction() as conn:
            now = self._clock()
            await self._check_limit(
                conn, subject, channel.present_kind, channel.present_policy, now
            )
            await self._ledger.record(conn, subject, channel.present_kind, now)

            record = await self._codes.get_code(conn, subject)
            rejection = self._reject_reason(record, candidate, aux, now)
            if rejection is None:
                await self._codes.mark_used(conn, subject, now)
                if on_verified is not None:
                    await on_verified(conn, record)

        if rejection is not None:
            raise rejection
        return record

    def _reject_reason(
        self,
        record: CodeRecord | None,
        candidate: str,
        aux: str | None,
        now: datetime,
    ) -> VerificationError | None:
        if record is None:
            return CodeNotFound("No code has been sent")
        if record.is_expired(now, self._channel.max_age):
            return CodeExpired("Code has expired")
        if record.is_used:
            return CodeAlreadyUsed("Code has already been used")
        if not secrets.compare_digest(record.secret.encode(), candidate.encode()):
            return InvalidCode("Code does not match")
        if self._channel.match_aux and record.aux != aux:
            return InvalidCode("Code was sent for a different destination")
        return None
