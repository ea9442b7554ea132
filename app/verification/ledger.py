"""
Append-only log of verification attempts.

Rows are never updated or deleted; rate limits only ever look at a
trailing time window.
"""

from __future__ import annotations

from datetime import datetime

import aiosqlite

from app.db import from_millis, to_millis
from app.verification.subjects import AttemptKind, EmailSubject, PhoneSubject, Subject


class AttemptLedger:
    """Records attempts and lists them back per subject."""

    async def record(
        self,
        conn: aiosqlite.Connection,
        subject: Subject,
        kind: AttemptKind,
        at: datetime,
    ) -> None:
        if isinstance(subject, EmailSubject):
            email, user_id, phone = subject.email, None, None
        else:
            email, user_id, phone = None, subject.user_id, subject.phone

        await conn.execute(
            """
            INSERT INTO verification_attempts (kind, email, user_id, phone, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (kind.value, email, user_id, phone, to_millis(at)),
        )

    async def list_since(
        self,
        conn: aiosqlite.Connection,
        subject: Subject,
        kind: AttemptKind,
        since: datetime,
    ) -> list[datetime]:
        """
        Timestamps of attempts at or after ``since``, in no particular order.

        Phone subjects match on the user *or* the phone number, so a phone
        reused across accounts and an account cycling through phones are
        both counted.
        """
        sql = "SELECT created_at FROM verification_attempts WHERE kind = ? AND created_at >= ?"
        params: list = [kind.value, to_millis(since)]

        if isinstance(subject, PhoneSubject):
            if subject.phone is not None:
                sql += " AND (user_id = ? OR phone = ?)"
                params += [subject.user_id, subject.phone]
            else:
                sql += " AND user_id = ?"
                params.append(subject.user_id)
        else:
            sql += " AND email = ?"
            params.append(subject.email)

        async with conn.execute(sql, params) as cur:
            rows = await cur.fetchall()
        return [from_millis(r["created_at"]) for r in rows]
