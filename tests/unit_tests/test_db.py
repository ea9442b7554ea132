"""Tests for the connection pool, transactions and the user repository."""

import pytest

from app import db
from app.db import Database
from app.verification.errors import StoreUnavailable
from tests.mocks.models import ALICE_EMAIL, ALICE_PHONE


class Boom(Exception):
    pass


class TestTransaction:
    async def test_commit_persists(self, database):
        async with database.transaction() as conn:
            user_id = await db.add_user(conn, ALICE_EMAIL, "hash")

        async with database.connection() as conn:
            user = await db.get_user(conn, user_id)
        assert user.email == ALICE_EMAIL

    async def test_exception_rolls_back_and_propagates(self, database):
        with pytest.raises(Boom):
            async with database.transaction() as conn:
                await db.add_user(conn, ALICE_EMAIL, "hash")
                raise Boom()

        async with database.connection() as conn:
            assert await db.is_email_registered(conn, ALICE_EMAIL) is False

    async def test_connection_released_after_failure(self, tmp_path):
        database = Database(str(tmp_path / "one.db"), pool_size=1)
        await database.connect()
        try:
            for _ in range(3):
                with pytest.raises(Boom):
                    async with database.transaction():
                        raise Boom()
            # Would block forever if the single connection leaked.
            async with database.transaction() as conn:
                await db.add_user(conn, ALICE_EMAIL, "hash")
        finally:
            await database.close()

    async def test_unconnected_database_is_unavailable(self, tmp_path):
        database = Database(str(tmp_path / "never.db"))
        with pytest.raises(StoreUnavailable):
            async with database.connection():
                pass

    async def test_close_while_borrowed(self, tmp_path):
        database = Database(str(tmp_path / "closing.db"), pool_size=1)
        await database.connect()
        async with database.connection():
            await database.close()

        with pytest.raises(StoreUnavailable):
            async with database.connection():
                pass


class TestUsers:
    async def test_registration_lookup(self, database):
        async with database.transaction() as conn:
            assert await db.is_email_registered(conn, ALICE_EMAIL) is False
            await db.add_user(conn, ALICE_EMAIL, "hash")
            assert await db.is_email_registered(conn, ALICE_EMAIL) is True

    async def test_set_password_and_phone(self, database):
        async with database.transaction() as conn:
            user_id = await db.add_user(conn, ALICE_EMAIL, "old")
            await db.set_user_password(conn, ALICE_EMAIL, "new")
            await db.set_user_phone(conn, user_id, ALICE_PHONE)

        async with database.connection() as conn:
            user = await db.get_user_by_email(conn, ALICE_EMAIL)
        assert user.password == "new"
        assert user.phone == ALICE_PHONE

    async def test_missing_user(self, database):
        async with database.connection() as conn:
            assert await db.get_user(conn, 999) is None
            assert await db.get_user_by_email(conn, "nobody@example.com") is None
