"""Tests for the attempt ledger."""

from datetime import timedelta

from app.verification.ledger import AttemptLedger
from app.verification.subjects import AttemptKind, EmailSubject, PhoneSubject
from tests.mocks.models import ALICE_EMAIL, ALICE_PHONE, BOB_EMAIL, BOB_PHONE, START


class TestEmailAttempts:
    async def test_record_and_list(self, database):
        ledger = AttemptLedger()
        subject = EmailSubject(ALICE_EMAIL)
        async with database.transaction() as conn:
            await ledger.record(conn, subject, AttemptKind.SEND_EMAIL, START)
            await ledger.record(conn, subject, AttemptKind.SEND_EMAIL, START + timedelta(minutes=1))

        async with database.connection() as conn:
            times = await ledger.list_since(conn, subject, AttemptKind.SEND_EMAIL, START)
        assert sorted(times) == [START, START + timedelta(minutes=1)]

    async def test_since_filters_older_attempts(self, database):
        ledger = AttemptLedger()
        subject = EmailSubject(ALICE_EMAIL)
        async with database.transaction() as conn:
            await ledger.record(conn, subject, AttemptKind.SEND_EMAIL, START - timedelta(hours=2))
            await ledger.record(conn, subject, AttemptKind.SEND_EMAIL, START)

        async with database.connection() as conn:
            times = await ledger.list_since(
                conn, subject, AttemptKind.SEND_EMAIL, START - timedelta(hours=1)
            )
        assert times == [START]

    async def test_kinds_and_subjects_are_separate(self, database):
        ledger = AttemptLedger()
        async with database.transaction() as conn:
            await ledger.record(conn, EmailSubject(ALICE_EMAIL), AttemptKind.SEND_EMAIL, START)
            await ledger.record(conn, EmailSubject(ALICE_EMAIL), AttemptKind.PRESENT_EMAIL, START)
            await ledger.record(conn, EmailSubject(BOB_EMAIL), AttemptKind.SEND_EMAIL, START)

        since = START - timedelta(minutes=1)
        async with database.connection() as conn:
            sends = await ledger.list_since(conn, EmailSubject(ALICE_EMAIL), AttemptKind.SEND_EMAIL, since)
            presents = await ledger.list_since(
                conn, EmailSubject(ALICE_EMAIL), AttemptKind.PRESENT_EMAIL, since
            )
        assert len(sends) == 1
        assert len(presents) == 1


class TestPhoneAttempts:
    async def _seed(self, database):
        ledger = AttemptLedger()
        async with database.transaction() as conn:
            # user 1 with Alice's phone, user 2 with Alice's phone, user 2 with Bob's phone
            await ledger.record(conn, PhoneSubject(1, ALICE_PHONE), AttemptKind.SEND_SMS, START)
            await ledger.record(conn, PhoneSubject(2, ALICE_PHONE), AttemptKind.SEND_SMS, START)
            await ledger.record(conn, PhoneSubject(2, BOB_PHONE), AttemptKind.SEND_SMS, START)
        return ledger

    async def test_same_phone_across_users_counts(self, database):
        ledger = await self._seed(database)
        async with database.connection() as conn:
            times = await ledger.list_since(
                conn, PhoneSubject(3, ALICE_PHONE), AttemptKind.SEND_SMS, START
            )
        assert len(times) == 2

    async def test_same_user_across_phones_counts(self, database):
        ledger = await self._seed(database)
        async with database.connection() as conn:
            times = await ledger.list_since(
                conn, PhoneSubject(2, "+37069999999"), AttemptKind.SEND_SMS, START
            )
        assert len(times) == 2

    async def test_user_or_phone_union(self, database):
        ledger = await self._seed(database)
        async with database.connection() as conn:
            times = await ledger.list_since(
                conn, PhoneSubject(1, BOB_PHONE), AttemptKind.SEND_SMS, START
            )
        # user 1's own attempt plus user 2's attempt against Bob's phone
        assert len(times) == 2

    async def test_without_phone_matches_user_only(self, database):
        ledger = await self._seed(database)
        async with database.connection() as conn:
            times = await ledger.list_since(conn, PhoneSubject(1), AttemptKind.SEND_SMS, START)
        assert len(times) == 1
