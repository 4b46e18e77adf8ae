"""
Test fixtures for the NUCash API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - notifier: Recording stand-in for the e-mail Notifier
  - client: Async HTTP test client against the test database and notifier
  - make_account: Factory that registers (and optionally activates and
    funds) a card holder through the API
  - student: An active account holding PHP 20.00

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database.
  - get_db is overridden with session_dependency() over a sessionmaker
    bound to the test engine, so the application's commit/rollback rules
    are the ones under test.
  - Accounts are registered through the real /treasury/register endpoint.
    Activation is done by updating the row directly, the way an operator
    would fix up test data; the PIN + OTP flow has its own tests.
"""

import itertools
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from nucash.database import Base, get_db, session_dependency
from nucash.dependencies import get_notifier
from nucash.main import app
from nucash.models.account import Account
from nucash.services.notification_service import Notifier


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


class RecordingNotifier(Notifier):
    """Notifier that records what would have been sent instead of sending it."""

    def __init__(self):
        super().__init__()
        self.sent: list[tuple[str, tuple]] = []

    async def send_payment_receipt(self, receipt):
        self.sent.append(("payment", (receipt,)))
        return True

    async def send_refund_receipt(self, receipt):
        self.sent.append(("refund", (receipt,)))
        return True

    async def send_cash_in_receipt(self, receipt):
        self.sent.append(("cash_in", (receipt,)))
        return True

    async def send_temporary_pin(self, email, pin, full_name, school_uid):
        self.sent.append(("temporary_pin", (email, pin, full_name, school_uid)))
        return True

    async def send_activation_otp(self, email, otp, full_name):
        self.sent.append(("activation_otp", (email, otp, full_name)))
        return True

    def of_kind(self, kind: str) -> list[tuple]:
        return [payload for sent_kind, payload in self.sent if sent_kind == kind]


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(db_engine, notifier):
    """
    Async HTTP test client with the test database and notifier injected.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    app.dependency_overrides[get_db] = session_dependency(async_session)
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_account(client, db_engine):
    """
    Factory fixture: register a card holder, then optionally activate it and
    load money onto it.

    Usage:
        account = await make_account(balance_cents=2000)
        account = await make_account(active=False)
    """
    counter = itertools.count(1)
    async_session = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False,
    )

    async def _make(active: bool = True, balance_cents: int = 0, **overrides) -> dict:
        n = next(counter)
        payload = {
            "school_uid": f"2024{n:06d}",
            "rfid_uid": f"RFID{n:04d}",
            "first_name": "Juan",
            "last_name": f"Dela Cruz {n}",
            "email": f"student{n}@students.nu.edu.ph",
            "pin": "123456",
        }
        payload.update(overrides)
        response = await client.post("/treasury/register", json=payload)
        assert response.status_code == 201, f"Registration failed: {response.text}"
        account = response.json()

        if active:
            async with async_session() as session:
                await session.execute(
                    update(Account)
                    .where(Account.id == uuid.UUID(account["id"]))
                    .values(is_active=True)
                )
                await session.commit()
            account["is_active"] = True

        if balance_cents:
            cash_in = await client.post(
                "/treasury/cash-in",
                json={"account_id": account["id"], "amount_cents": balance_cents},
            )
            assert cash_in.status_code == 200, f"Cash-in failed: {cash_in.text}"
            account["balance_cents"] = balance_cents

        return account

    return _make


@pytest_asyncio.fixture
async def student(make_account):
    """An active account holding PHP 20.00."""
    return await make_account(balance_cents=2000)
