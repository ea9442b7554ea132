"""
Server-held sessions.

The browser only ever sees an opaque random id in a cookie; the session
payload lives in the ``sessions`` table.  Each session has a kind
(``email`` for the verification hand-off, ``user`` for a signed-in
account) and is only honoured while younger than the max age the
caller asks for, regardless of logout.
"""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import aiosqlite

from app.db import Database, from_millis, to_millis, utcnow

logger = logging.getLogger(__name__)

EMAIL_SESSION = "email"
USER_SESSION = "user"


@dataclass(frozen=True)
class Session:
    id: str
    kind: str
    created_at: datetime
    data: dict[str, Any] = field(default_factory=dict)


class SessionStore:
    def __init__(self, db: Database, *, clock=utcnow) -> None:
        self._db = db
        self._clock = clock

    async def create(
        self,
        kind: str,
        data: dict[str, Any],
        *,
        conn: aiosqlite.Connection | None = None,
    ) -> Session:
        """
        Store a new session.

        Pass ``conn`` to write it inside a transaction the caller already
        holds, so the session commits or rolls back with that work.
        """
        session = Session(
            id=secrets.token_urlsafe(32),
            kind=kind,
            created_at=from_millis(to_millis(self._clock())),
            data=dict(data),
        )
        if conn is not None:
            await self._insert(conn, session)
        else:
            async with self._db.connection() as own:
                await self._insert(own, session)
        return session

    @staticmethod
    async def _insert(conn: aiosqlite.Connection, session: Session) -> None:
        await conn.execute(
            "INSERT INTO sessions (id, kind, data, created_at) VALUES (?, ?, ?, ?)",
            (session.id, session.kind, json.dumps(session.data), to_millis(session.created_at)),
        )

    async def get(self, session_id: str | None, kind: str, max_age: timedelta) -> Session | None:
        """Return the session if it exists, has ``kind`` and is not too old."""
        if not session_id:
            return None
        async with self._db.connection() as conn:
            async with conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            ) as cur:
                row = await cur.fetchone()
            if row is None or row["kind"] != kind:
                return None

            created_at = from_millis(row["created_at"])
            if self._clock() - created_at > max_age:
                await conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
                return None

        return Session(
            id=row["id"],
            kind=row["kind"],
            created_at=created_at,
            data=json.loads(row["data"]),
        )

    async def delete(self, session_id: str | None) -> None:
        if not session_id:
            return
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))

    async def purge_expired(self, max_ages: dict[str, timedelta]) -> int:
        """Delete sessions older than the max age of their kind. Returns the count."""
        now = self._clock()
        removed = 0
        async with self._db.connection() as conn:
            for kind, max_age in max_ages.items():
                cur = await conn.execute(
                    "DELETE FROM sessions WHERE kind = ? AND created_at < ?",
                    (kind, to_millis(now - max_age)),
                )
                removed += cur.rowcount
        if removed:
            logger.info("Purged %d expired session(s)", removed)
        return removed
