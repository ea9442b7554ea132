"""
Password hashing with bcrypt.

Hashing is CPU-bound, so it runs in a worker thread to keep the event
loop responsive.
"""

from __future__ import annotations

import asyncio

import bcrypt

from app.config import BCRYPT_ROUNDS


def _hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _check(stored: str, candidate: str) -> bool:
    try:
        return bcrypt.checkpw(candidate.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


async def hash_password(password: str) -> str:
    return await asyncio.to_thread(_hash, password)


async def verify_password(stored: str, candidate: str) -> bool:
    return await asyncio.to_thread(_check, stored, candidate)
