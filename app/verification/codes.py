"""
Store for the single live verification code of each subject.

Writing a new code for a subject replaces the old row, which silently
invalidates any code sent before it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import aiosqlite

from app.db import from_millis, to_millis
from app.verification.errors import CodeNotFound
from app.verification.subjects import Subject


@dataclass(frozen=True)
class CodeRecord:
    subject_key: str
    secret: str
    created_at: datetime
    used_at: datetime | None = None
    aux: str | None = None

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    def is_expired(self, now: datetime, max_age: timedelta) -> bool:
        return now - self.created_at > max_age

    def expires_at(self, max_age: timedelta) -> datetime:
        return self.created_at + max_age


def _row_to_record(row: aiosqlite.Row) -> CodeRecord:
    return CodeRecord(
        subject_key=row["subject_key"],
        secret=row["secret"],
        created_at=from_millis(row["created_at"]),
        used_at=from_millis(row["used_at"]),
        aux=row["aux"],
    )


class CodeStore:
    async def set_code(
        self,
        conn: aiosqlite.Connection,
        subject: Subject,
        secret: str,
        created_at: datetime,
        aux: str | None = None,
    ) -> CodeRecord:
        """Replace the subject's live code with a fresh, unused one."""
        await conn.execute(
            """
            INSERT OR REPLACE INTO verification_codes (subject_key, secret, aux, created_at, used_at)
            VALUES (?, ?, ?, ?, NULL)
            """,
            (subject.key, secret, aux, to_millis(created_at)),
        )
        return CodeRecord(
            subject_key=subject.key,
            secret=secret,
            created_at=from_millis(to_millis(created_at)),
            aux=aux,
        )

    async def get_code(self, conn: aiosqlite.Connection, subject: Subject) -> CodeRecord | None:
        async with conn.execute(
            "SELECT * FROM verification_codes WHERE subject_key = ?", (subject.key,)
        ) as cur:
            row = await cur.fetchone()
        return _row_to_record(row) if row else None

    async def mark_used(
        self,
        conn: aiosqlite.Connection,
        subject: Subject,
        used_at: datetime,
    ) -> None:
        cur = await conn.execute(
            "UPDATE verification_codes SET used_at = ? WHERE subject_key = ?",
            (to_millis(used_at), subject.key),
        )
        if cur.rowcount == 0:
            raise CodeNotFound(f"No verification code for {subject.key}")
