"""Tests for the verification code store."""

from datetime import timedelta

import pytest

from app.verification.codes import CodeRecord, CodeStore
from app.verification.errors import CodeNotFound
from app.verification.subjects import EmailSubject, PhoneSubject
from tests.mocks.models import ALICE_EMAIL, ALICE_PHONE, BOB_EMAIL, START


async def test_get_missing_code_returns_none(database):
    async with database.connection() as conn:
        assert await CodeStore().get_code(conn, EmailSubject(ALICE_EMAIL)) is None


async def test_set_then_get(database):
    store = CodeStore()
    async with database.transaction() as conn:
        await store.set_code(conn, EmailSubject(ALICE_EMAIL), "s3cret", START)

    async with database.connection() as conn:
        record = await store.get_code(conn, EmailSubject(ALICE_EMAIL))
    assert record.secret == "s3cret"
    assert record.created_at == START
    assert record.used_at is None
    assert record.aux is None


async def test_set_replaces_previous_and_clears_used(database):
    store = CodeStore()
    subject = EmailSubject(ALICE_EMAIL)
    async with database.transaction() as conn:
        await store.set_code(conn, subject, "first", START)
        await store.mark_used(conn, subject, START + timedelta(seconds=5))
        await store.set_code(conn, subject, "second", START + timedelta(seconds=10))

    async with database.connection() as conn:
        record = await store.get_code(conn, subject)
    assert record.secret == "second"
    assert record.used_at is None
    assert record.created_at == START + timedelta(seconds=10)


async def test_mark_used(database):
    store = CodeStore()
    subject = PhoneSubject(7, ALICE_PHONE)
    async with database.transaction() as conn:
        await store.set_code(conn, subject, "123456", START, aux=ALICE_PHONE)
        await store.mark_used(conn, subject, START + timedelta(minutes=1))

    async with database.connection() as conn:
        record = await store.get_code(conn, subject)
    assert record.is_used
    assert record.used_at == START + timedelta(minutes=1)
    assert record.aux == ALICE_PHONE


async def test_mark_used_without_code_raises(database):
    with pytest.raises(CodeNotFound):
        async with database.transaction() as conn:
            await CodeStore().mark_used(conn, EmailSubject(BOB_EMAIL), START)


async def test_phone_codes_keyed_by_user(database):
    store = CodeStore()
    async with database.transaction() as conn:
        await store.set_code(conn, PhoneSubject(7, ALICE_PHONE), "111111", START, aux=ALICE_PHONE)

    async with database.connection() as conn:
        record = await store.get_code(conn, PhoneSubject(7))
    assert record.secret == "111111"


def test_expiry_is_strictly_after_max_age():
    record = CodeRecord(subject_key="email:a@x.com", secret="x", created_at=START)
    max_age = timedelta(minutes=30)
    assert not record.is_expired(START + max_age, max_age)
    assert record.is_expired(START + max_age + timedelta(milliseconds=1), max_age)
    assert record.expires_at(max_age) == START + max_age
