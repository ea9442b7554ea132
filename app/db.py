"""
SQLite database layer using aiosqlite.

Stores users, verification codes, verification attempts and sessions.
Tables are created automatically on first connect.

Connections are pooled and handed out explicitly: callers either borrow
one for plain reads with ``Database.connection()`` or run several
statements atomically with ``Database.transaction()``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from app.verification.errors import StoreUnavailable

logger = logging.getLogger(__name__)


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    email           TEXT NOT NULL UNIQUE,
    phone           TEXT,
    password        TEXT NOT NULL,
    created_at      INTEGER NOT NULL    -- epoch milliseconds
);

CREATE TABLE IF NOT EXISTS verification_codes (
    subject_key     TEXT PRIMARY KEY,   -- e.g. "email:a@x.com", "phone:42"
    secret          TEXT NOT NULL,
    aux             TEXT,               -- e.g. the phone number pending verification
    created_at      INTEGER NOT NULL,
    used_at         INTEGER
);

CREATE TABLE IF NOT EXISTS verification_attempts (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    kind            TEXT NOT NULL,
    email           TEXT,
    user_id         INTEGER,
    phone           TEXT,
    created_at      INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_attempts_email ON verification_attempts(kind, email, created_at);
CREATE INDEX IF NOT EXISTS idx_attempts_user ON verification_attempts(kind, user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_attempts_phone ON verification_attempts(kind, phone, created_at);

CREATE TABLE IF NOT EXISTS sessions (
    id              TEXT PRIMARY KEY,
    kind            TEXT NOT NULL,
    data            TEXT NOT NULL,      -- JSON object
    created_at      INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_created ON sessions(created_at);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_millis(dt: datetime) -> int:
    return int(round(dt.timestamp() * 1000))


def from_millis(ms: int | None) -> datetime | None:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
#                    CONNECTION POOL
# ══════════════════════════════════════════════════════════════════════════


class Database:
    """
    A fixed-size pool of aiosqlite connections to one SQLite file.

    Connections run in autocommit mode; ``transaction()`` issues
    ``BEGIN IMMEDIATE`` itself so the write lock is held from the first
    read of the transaction, which serialises concurrent rate-limit checks.
    """

    def __init__(
        self,
        path: str,
        *,
        pool_size: int = 4,
        busy_timeout: float = 10.0,
    ) -> None:
        self._path = path
        self._pool_size = max(1, pool_size)
        self._busy_timeout = busy_timeout
        self._idle: asyncio.Queue[aiosqlite.Connection] | None = None
        self._all: list[aiosqlite.Connection] = []

    async def connect(self) -> None:
        """Open the pool and create tables if they don't exist."""
        db_path = Path(self._path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self._idle = asyncio.Queue()
        try:
            for _ in range(self._pool_size):
                conn = await aiosqlite.connect(
                    str(db_path),
                    timeout=self._busy_timeout,
                    isolation_level=None,
                )
                conn.row_factory = aiosqlite.Row  # dict-like rows
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA foreign_keys=ON")
                self._all.append(conn)
                self._idle.put_nowait(conn)

            await self._all[0].executescript(_SCHEMA)
        except sqlite3.Error as exc:
            await self.close()
            raise StoreUnavailable(f"Cannot open database at {db_path}") from exc

        logger.info("Database initialized at %s (%d connections)", db_path, self._pool_size)

    async def close(self) -> None:
        """Close every pooled connection."""
        for conn in self._all:
            await conn.close()
        if self._all:
            logger.info("Database connections closed")
        self._all = []
        self._idle = None

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection; it goes back to the pool on every exit path.

        SQLite errors raised inside the block, such as a lock wait that
        timed out, surface as ``StoreUnavailable``.
        """
        if self._idle is None:
            raise StoreUnavailable("Database not initialized, call connect() first")
        conn = await self._idle.get()
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.exception("Database operation failed")
            raise StoreUnavailable("Database operation failed") from exc
        finally:
            # the pool is gone if close() ran while this was borrowed
            if self._idle is not None:
                self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run the body atomically on one dedicated connection.

        Commits when the body finishes, rolls back and re-raises when it
        raises.
        """
        async with self.connection() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as exc:
                raise StoreUnavailable("Could not begin transaction") from exc

            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                raise

            try:
                await conn.execute("COMMIT")
            except sqlite3.OperationalError as exc:
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                raise StoreUnavailable("Could not commit transaction") from exc


# ══════════════════════════════════════════════════════════════════════════
#                    USER REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class User:
    id: int
    email: str
    phone: str | None
    password: str
    created_at: datetime


def _row_to_user(row: aiosqlite.Row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        phone=row["phone"],
        password=row["password"],
        created_at=from_millis(row["created_at"]),
    )


async def is_email_registered(conn: aiosqlite.Connection, email: str) -> bool:
    async with conn.execute(
        "SELECT COUNT(*) AS count FROM users WHERE email = ?", (email,)
    ) as cur:
        row = await cur.fetchone()
    return row["count"] > 0


async def add_user(conn: aiosqlite.Connection, email: str, password: str) -> int:
    """Insert a new user and return its id."""
    cur = await conn.execute(
        "INSERT INTO users (email, password, created_at) VALUES (?, ?, ?)",
        (email, password, to_millis(utcnow())),
    )
    return cur.lastrowid


async def set_user_password(conn: aiosqlite.Connection, email: str, password: str) -> None:
    await conn.execute(
        "UPDATE users SET password = ? WHERE email = ?", (password, email)
    )


async def set_user_phone(conn: aiosqlite.Connection, user_id: int, phone: str) -> None:
    await conn.execute(
        "UPDATE users SET phone = ? WHERE id = ?", (phone, user_id)
    )


async def get_user(conn: aiosqlite.Connection, user_id: int) -> User | None:
    async with conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_user(row) if row else None


async def get_user_by_email(conn: aiosqlite.Connection, email: str) -> User | None:
    async with conn.execute("SELECT * FROM users WHERE email = ?", (email,)) as cur:
        row = await cur.fetchone()
    return _row_to_user(row) if row else None
