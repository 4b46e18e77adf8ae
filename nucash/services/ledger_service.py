"""
Ledger service: the LedgerWriter.

Every balance mutation gets exactly one append-only Transaction row,
written after AccountStore.apply_delta() succeeded and carrying the
resulting balance as its snapshot.

Transaction ids:
  "<PREFIX>-<UTC yyyymmddHHMMSS>-<8 hex chars>", e.g. TXN-20261018093015-9F2C41AB.
  Debits and cash-in credits use TXN; refund credits use RFD so they are
  easy to tell apart on a statement. Each id is drawn independently; a
  refund points at what it refunds through `related_transaction_id`, not
  through its own text.

Status:
  The only mutation a row ever sees is Completed -> Refunded, done with a
  conditional UPDATE so two refunds racing on the same row cannot both win.
"""

import logging
import secrets
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from nucash.exceptions import (
    AlreadyRefundedError,
    PersistenceInconsistencyError,
    TransactionNotFoundError,
)
from nucash.models.account import Account
from nucash.models.transaction import Transaction, STATUS_COMPLETED, STATUS_REFUNDED

logger = logging.getLogger(__name__)

DEBIT_PREFIX = "TXN"
REFUND_PREFIX = "RFD"


def generate_transaction_id(prefix: str = DEBIT_PREFIX) -> str:
    """Return a fresh transaction id with the given prefix."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{prefix}-{timestamp}-{secrets.token_hex(4).upper()}"


async def _unique_transaction_id(db: AsyncSession, prefix: str) -> str:
    # Retry on collision; 32 random bits per second make one very unlikely.
    for _ in range(10):
        transaction_id = generate_transaction_id(prefix)
        existing = await db.execute(
            select(Transaction.id).where(Transaction.transaction_id == transaction_id)
        )
        if existing.scalar_one_or_none() is None:
            return transaction_id
    raise RuntimeError("Failed to generate a unique transaction id")


async def record(
    db: AsyncSession,
    account: Account,
    transaction_type: str,
    amount_cents: int,
    balance_after_cents: int,
    *,
    prefix: str = DEBIT_PREFIX,
    **context,
) -> Transaction:
    """
    Append one ledger row for a balance change that has already been applied.

    Args:
        db: Database session.
        account: The account whose balance changed.
        transaction_type: "debit" or "credit".
        amount_cents: Positive magnitude of the change.
        balance_after_cents: The account's balance after the change (snapshot).
        prefix: Transaction id prefix (TXN or RFD).
        **context: Optional informational columns (shuttle_id, driver_id,
            route_id, trip_id, merchant_id, admin_id, device_id, description,
            related_transaction_id, idempotency_key).

    Returns:
        The persisted Transaction.

    Raises:
        PersistenceInconsistencyError: If the row could not be flushed. The
            balance write is still pending in the same session at that point,
            so the session must be rolled back rather than committed. The
            driver error is logged here and kept out of the exception detail.
    """
    # A failed flush expires the account, so its id is read up front.
    account_id = account.id
    txn = Transaction(
        transaction_id=await _unique_transaction_id(db, prefix),
        transaction_type=transaction_type,
        amount_cents=amount_cents,
        balance_cents=balance_after_cents,
        status=STATUS_COMPLETED,
        account_id=account_id,
        **context,
    )
    db.add(txn)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error(
            "Ledger write failed after balance update on account %s: %s",
            account_id, exc,
        )
        raise PersistenceInconsistencyError(account_id) from exc
    return txn


async def find_transaction(db: AsyncSession, reference: str) -> Transaction:
    """
    Resolve a transaction by external id, falling back to the internal UUID.

    Raises:
        TransactionNotFoundError: If neither lookup matches.
    """
    result = await db.execute(
        select(Transaction)
        .where(Transaction.transaction_id == reference)
        .execution_options(populate_existing=True)
    )
    txn = result.scalar_one_or_none()

    if txn is None:
        try:
            internal_id = uuid.UUID(reference)
        except ValueError:
            internal_id = None
        if internal_id is not None:
            result = await db.execute(
                select(Transaction)
                .where(Transaction.id == internal_id)
                .execution_options(populate_existing=True)
            )
            txn = result.scalar_one_or_none()

    if txn is None:
        raise TransactionNotFoundError(reference)
    return txn


async def find_by_idempotency_key(db: AsyncSession, key: str) -> Transaction | None:
    result = await db.execute(
        select(Transaction).where(Transaction.idempotency_key == key)
    )
    return result.scalar_one_or_none()


async def mark_refunded(db: AsyncSession, txn: Transaction) -> Transaction:
    """
    Flip a transaction from Completed to Refunded.

    Amount and balance snapshot are left as they are.

    Raises:
        AlreadyRefundedError: If the row is not (or no longer) Completed.
    """
    if txn.status == STATUS_REFUNDED:
        raise AlreadyRefundedError(txn.transaction_id)

    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == txn.id)
        .where(Transaction.status == STATUS_COMPLETED)
        .values(status=STATUS_REFUNDED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyRefundedError(txn.transaction_id)

    set_committed_value(txn, "status", STATUS_REFUNDED)
    return txn


async def list_for_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    type_filter: str | None = None,
    status_filter: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """
    List an account's ledger rows, newest first.

    Args:
        db: Database session.
        account_id: The account whose ledger to read.
        type_filter: Optional "credit" / "debit".
        status_filter: Optional "Completed" / "Refunded".
        limit: Max number of results.
        offset: Number of results to skip (for pagination).
    """
    query = (
        select(Transaction)
        .where(Transaction.account_id == account_id)
        .order_by(Transaction.created_at.desc(), Transaction.transaction_id.desc())
        .limit(limit)
        .offset(offset)
    )

    if type_filter:
        query = query.where(Transaction.transaction_type == type_filter)
    if status_filter:
        query = query.where(Transaction.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())
