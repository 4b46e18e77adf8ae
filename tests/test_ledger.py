"""
Service-level tests for the account store and the ledger writer.

These tests verify:
  - Transaction id format and uniqueness
  - The optional compare-and-swap balance write rejects stale writes,
    and the default write is last-writer-wins
  - A ledger row that can't be flushed surfaces as a persistence error
  - Completed -> Refunded happens at most once, even across sessions
"""

import re
import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nucash.config import settings
from nucash.exceptions import (
    AlreadyRefundedError,
    ConcurrentBalanceUpdateError,
    PersistenceInconsistencyError,
)
from nucash.services import account_service, ledger_service


TRANSACTION_ID_PATTERN = re.compile(r"^(TXN|RFD)-\d{14}-[0-9A-F]{8}$")


class TestTransactionIds:

    def test_format(self):
        assert TRANSACTION_ID_PATTERN.match(ledger_service.generate_transaction_id())
        refund_id = ledger_service.generate_transaction_id(ledger_service.REFUND_PREFIX)
        assert refund_id.startswith("RFD-")
        assert TRANSACTION_ID_PATTERN.match(refund_id)

    def test_ids_are_distinct(self):
        ids = {ledger_service.generate_transaction_id() for _ in range(500)}
        assert len(ids) == 500


class TestBalanceWrites:

    async def test_apply_delta_updates_instance_and_row(self, student, db_session):
        account = await account_service.find_by_id(db_session, uuid.UUID(student["id"]))
        version = account.version

        await account_service.apply_delta(db_session, account, -300)
        assert account.balance_cents == 1700
        assert account.version == version + 1

        reloaded = await account_service.find_by_id(db_session, account.id)
        assert reloaded.balance_cents == 1700

    async def test_stale_write_rejected_when_optimistic(self, student, db_engine, monkeypatch):
        monkeypatch.setattr(settings, "OPTIMISTIC_BALANCE_WRITES", True)
        account_id = uuid.UUID(student["id"])
        async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

        async with async_session() as first, async_session() as second:
            a = await account_service.find_by_id(first, account_id)
            b = await account_service.find_by_id(second, account_id)

            await account_service.apply_delta(first, a, -100)
            await first.commit()

            with pytest.raises(ConcurrentBalanceUpdateError):
                await account_service.apply_delta(second, b, -100)
            await second.rollback()

        async with async_session() as check:
            account = await account_service.find_by_id(check, account_id)
            assert account.balance_cents == 1900

    async def test_default_write_is_last_writer_wins(self, student, db_engine):
        """Without compare-and-swap the second stale write overwrites the first."""
        account_id = uuid.UUID(student["id"])
        async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

        async with async_session() as first, async_session() as second:
            a = await account_service.find_by_id(first, account_id)
            b = await account_service.find_by_id(second, account_id)

            await account_service.apply_delta(first, a, -100)
            await first.commit()
            await account_service.apply_delta(second, b, -100)
            await second.commit()

        async with async_session() as check:
            account = await account_service.find_by_id(check, account_id)
            assert account.balance_cents == 1900


class TestLedgerWriter:

    async def test_ledger_replay_matches_balance(self, student, db_session):
        account_id = uuid.UUID(student["id"])
        assert await account_service.compute_ledger_balance(db_session, account_id) == 2000

    async def test_failed_flush_is_persistence_error(self, student, db_session):
        """A row the database rejects (amount must be positive) is reported, not swallowed."""
        account = await account_service.find_by_id(db_session, uuid.UUID(student["id"]))

        with pytest.raises(PersistenceInconsistencyError):
            await ledger_service.record(db_session, account, "debit", 0, account.balance_cents)
        await db_session.rollback()

    async def test_mark_refunded_once(self, client, student, db_session):
        pay = await client.post("/shuttle/pay", json={"rfid_uid": student["rfid_uid"]})
        txn = await ledger_service.find_transaction(db_session, pay.json()["transaction_id"])

        await ledger_service.mark_refunded(db_session, txn)
        assert txn.status == "Refunded"
        with pytest.raises(AlreadyRefundedError):
            await ledger_service.mark_refunded(db_session, txn)

    async def test_mark_refunded_race(self, client, student, db_engine):
        """Two sessions holding the same Completed row: only one flip succeeds."""
        pay = await client.post("/shuttle/pay", json={"rfid_uid": student["rfid_uid"]})
        txn_id = pay.json()["transaction_id"]
        async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

        async with async_session() as first, async_session() as second:
            a = await ledger_service.find_transaction(first, txn_id)
            b = await ledger_service.find_transaction(second, txn_id)

            await ledger_service.mark_refunded(first, a)
            await first.commit()

            with pytest.raises(AlreadyRefundedError):
                await ledger_service.mark_refunded(second, b)
            await second.rollback()

    async def test_find_transaction_by_internal_id(self, client, student, db_session):
        pay = await client.post("/shuttle/pay", json={"rfid_uid": student["rfid_uid"]})
        txn = await ledger_service.find_transaction(db_session, pay.json()["transaction_id"])

        by_uuid = await ledger_service.find_transaction(db_session, str(txn.id))
        assert by_uuid.transaction_id == txn.transaction_id
