"""
Account service: the AccountStore.

This module is the single source of truth for an account's current balance,
activation flag and RFID association:

  - Account lookup by id, RFID or school id (the account directory)
  - Balance mutation (apply_delta)
  - Balance verification (cached vs. replayed from the ledger)
  - RFID card transfer

Balance writes:
  apply_delta() is a read-modify-write against the Account instance the
  caller already holds: the new balance is computed from the in-memory
  value and written with a single UPDATE, with no re-fetch in between.

  By default the UPDATE is unconditional, so two requests that read the same
  balance both write and the later one wins. With OPTIMISTIC_BALANCE_WRITES
  the UPDATE also matches on the `version` that was read, and a write that
  finds the version moved raises ConcurrentBalanceUpdateError instead of
  overwriting.

  Checking that the account is active (and within the negative floor) is the
  caller's job; the store moves money for whatever account it is given.

Lookups use populate_existing so an Account already in the session's
identity map is refreshed from its row rather than served stale.
"""

import logging
import uuid

from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from nucash.config import settings
from nucash.exceptions import (
    AccountNotFoundError,
    ConcurrentBalanceUpdateError,
    DuplicateRfidError,
)
from nucash.models.account import Account
from nucash.models.transaction import Transaction, TRANSACTION_CREDIT

logger = logging.getLogger(__name__)


async def _find_one(db: AsyncSession, *criteria) -> Account | None:
    result = await db.execute(
        select(Account)
        .where(*criteria)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_by_id(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Get an account by its primary key.

    Raises:
        AccountNotFoundError: If no account has this id.
    """
    account = await _find_one(db, Account.id == account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def find_by_rfid(db: AsyncSession, rfid_uid: str) -> Account:
    """
    Resolve an RFID tag to its account.

    This is the directory lookup shared by live payments and offline sync.

    Raises:
        AccountNotFoundError: If the card isn't associated with any account.
    """
    account = await _find_one(db, Account.rfid_uid == rfid_uid)
    if account is None:
        raise AccountNotFoundError(rfid_uid, detail="Card not recognized")
    return account


async def find_by_school_uid(db: AsyncSession, school_uid: str) -> Account:
    """Get an account by school (or merchant) id."""
    account = await _find_one(db, Account.school_uid == school_uid)
    if account is None:
        raise AccountNotFoundError(school_uid)
    return account


async def apply_delta(
    db: AsyncSession,
    account: Account,
    delta_cents: int,
) -> Account:
    """
    Add `delta_cents` (negative for a debit) to the account's balance.

    Args:
        db: Database session.
        account: The account as the caller last read it.
        delta_cents: Signed amount to apply.

    Returns:
        The same Account instance, now carrying the new balance and version.

    Raises:
        ConcurrentBalanceUpdateError: With OPTIMISTIC_BALANCE_WRITES on, if
            another writer changed the account since it was read.
        AccountNotFoundError: If the account row no longer exists.
    """
    read_version = account.version
    new_balance = account.balance_cents + delta_cents

    stmt = (
        update(Account)
        .where(Account.id == account.id)
        .values(balance_cents=new_balance, version=Account.version + 1)
        .execution_options(synchronize_session=False)
    )
    if settings.OPTIMISTIC_BALANCE_WRITES:
        stmt = stmt.where(Account.version == read_version)

    result = await db.execute(stmt)
    if result.rowcount == 0:
        if settings.OPTIMISTIC_BALANCE_WRITES:
            logger.warning(
                "Stale balance write rejected for account %s (version %s)",
                account.id, read_version,
            )
            raise ConcurrentBalanceUpdateError(account.id)
        raise AccountNotFoundError(account.id)

    # Mirror the write on the instance without marking it dirty, so no
    # second UPDATE is emitted at flush time.
    set_committed_value(account, "balance_cents", new_balance)
    set_committed_value(account, "version", read_version + 1)
    return account


async def compute_ledger_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
) -> int:
    """
    Replay the ledger: sum of credits minus sum of debits for the account.

    Every row counts, whatever its status. A refunded debit stays in the
    ledger and is offset by its own refund credit.
    """
    signed_amount = case(
        (Transaction.transaction_type == TRANSACTION_CREDIT, Transaction.amount_cents),
        else_=-Transaction.amount_cents,
    )
    result = await db.execute(
        select(func.coalesce(func.sum(signed_amount), 0))
        .where(Transaction.account_id == account_id)
    )
    return result.scalar()


async def get_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
) -> dict:
    """
    Get the account balance - both cached and replayed from the ledger.

    A mismatch means a balance write happened without its ledger row (or the
    other way round) and needs investigation.

    Returns:
        Dict with balance_cents, ledger_balance_cents, match, is_active.
    """
    account = await find_by_id(db, account_id)
    ledger_balance_cents = await compute_ledger_balance(db, account_id)

    return {
        "account_id": account.id,
        "balance_cents": account.balance_cents,
        "ledger_balance_cents": ledger_balance_cents,
        "match": account.balance_cents == ledger_balance_cents,
        "is_active": account.is_active,
    }


async def transfer_card(
    db: AsyncSession,
    old_rfid_uid: str,
    new_rfid_uid: str,
) -> Account:
    """
    Re-associate an account with a new physical RFID card.

    The account row, its balance and its transactions are untouched; only the
    RFID lookup key moves.

    Raises:
        AccountNotFoundError: If no account holds the old card.
        DuplicateRfidError: If the new card already belongs to an account.
    """
    account = await find_by_rfid(db, old_rfid_uid)

    if await _find_one(db, Account.rfid_uid == new_rfid_uid) is not None:
        raise DuplicateRfidError(new_rfid_uid)

    account.rfid_uid = new_rfid_uid
    await db.flush()

    logger.info(
        "Card transferred for account %s: %s -> %s",
        account.id, old_rfid_uid, new_rfid_uid,
    )
    return account
