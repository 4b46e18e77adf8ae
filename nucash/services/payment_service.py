"""
Payment service: the PaymentProtocol.

THIS IS THE MONEY-CORRECTNESS CORE OF THE PROJECT. It handles:
  - Live fare payments from shuttle readers (pay)
  - Batch refunds of earlier payments (refund)
  - Replay of payments collected while a reader was offline (sync)

Every money movement follows the same two steps, inside the request's
database transaction:
  1. account_service.apply_delta() writes the new balance
  2. ledger_service.record() appends the row explaining it, with the new
     balance as its snapshot

Live payments:
  - The fare is resolved by settings_service.resolve_fare()
  - Inactive accounts are rejected (AccountInactiveError)
  - The balance may go negative, but not below the configured negative
    limit (InsufficientBalanceError). Nothing is written on rejection.

Batches:
  refund() and sync() process items independently, each in its own
  SAVEPOINT. An error on one item rolls back that item only and is reported
  in the batch response with its error_type; the remaining items still run.
  Unexpected (non-domain) errors are logged with their traceback and
  reported as "internal_error".

Offline sync policy:
  By default an offline entry is debited without the active-flag and
  negative-limit checks of a live payment: the ride already happened while
  the reader was offline. SYNC_ENFORCE_LIVE_RULES applies the live checks
  and rejects violating entries instead.

  An entry is only deduplicated when it carries an `offline_id`; its key
  "<device_id>:<offline_id>" is stored on the ledger row and a second sync
  of the same key is rejected. Entries without one are debited on every
  replay.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from nucash.config import settings
from nucash.exceptions import (
    AccountInactiveError,
    AlreadyRefundedError,
    DuplicateOfflineEntryError,
    InsufficientBalanceError,
    NotRefundableError,
    NUCashError,
)
from nucash.models.transaction import (
    TRANSACTION_CREDIT,
    TRANSACTION_DEBIT,
    STATUS_REFUNDED,
)
from nucash.services import account_service, ledger_service, settings_service
from nucash.services.notification_service import PaymentReceipt, RefundReceipt

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Route cancelled by driver"
INTERNAL_ERROR_TYPE = "internal_error"


def _item_error(exc: Exception) -> dict:
    """Describe a failed batch item without leaking internals of unexpected errors."""
    if isinstance(exc, NUCashError):
        return {"error_type": exc.error_type, "error": exc.detail}
    return {"error_type": INTERNAL_ERROR_TYPE, "error": "Internal error"}


def _rejection(entry: dict, exc: Exception) -> dict:
    return {
        "rfid_uid": entry.get("rfid_uid"),
        "offline_id": entry.get("offline_id"),
        **_item_error(exc),
    }


async def pay(
    db: AsyncSession,
    rfid_uid: str,
    fare_cents: int | None = None,
    *,
    shuttle_id: str | None = None,
    driver_id: str | None = None,
    route_id: str | None = None,
    trip_id: str | None = None,
) -> PaymentReceipt:
    """
    Debit one shuttle fare from the account holding this RFID card.

    Args:
        db: Database session.
        rfid_uid: The tapped card.
        fare_cents: Explicit fare for this payment, if the reader sent one.
        shuttle_id / driver_id / route_id / trip_id: Ride context, stored on
            the ledger row. route_id also takes part in fare resolution.

    Returns:
        A PaymentReceipt with the fare, both balances and the transaction id.

    Raises:
        AccountNotFoundError: If the card isn't associated with an account.
        AccountInactiveError: If the account hasn't been activated.
        InsufficientBalanceError: If the fare would take the balance below
            the negative limit.
    """
    account = await account_service.find_by_rfid(db, rfid_uid)
    if not account.is_active:
        raise AccountInactiveError(account.id)

    fare = await settings_service.resolve_fare(db, fare_cents, route_id)

    negative_limit = await settings_service.get_negative_limit(db)
    balance_before = account.balance_cents
    balance_after = balance_before - fare

    if balance_after < negative_limit:
        logger.info(
            "Payment declined for %s: balance %s, fare %s, limit %s",
            rfid_uid, balance_before, fare, negative_limit,
        )
        raise InsufficientBalanceError(
            account_id=account.id,
            current_balance_cents=balance_before,
            fare_cents=fare,
            negative_limit_cents=negative_limit,
        )

    await account_service.apply_delta(db, account, -fare)
    txn = await ledger_service.record(
        db,
        account,
        TRANSACTION_DEBIT,
        fare,
        balance_after,
        shuttle_id=shuttle_id,
        driver_id=driver_id,
        route_id=route_id,
        trip_id=trip_id,
    )

    logger.info(
        "Payment %s: %s paid %s (%s -> %s)",
        txn.transaction_id, account.full_name, fare, balance_before, balance_after,
    )

    return PaymentReceipt(
        account_email=account.email,
        account_name=account.full_name,
        rfid_uid=account.rfid_uid,
        fare_cents=fare,
        previous_balance_cents=balance_before,
        new_balance_cents=balance_after,
        transaction_id=txn.transaction_id,
        merchant_name=settings.SHUTTLE_MERCHANT_NAME,
    )


async def _refund_one(
    db: AsyncSession,
    reference: str,
    reason: str,
) -> tuple[dict, RefundReceipt]:
    original = await ledger_service.find_transaction(db, reference)

    if original.status == STATUS_REFUNDED:
        raise AlreadyRefundedError(original.transaction_id)
    if original.transaction_type != TRANSACTION_DEBIT:
        raise NotRefundableError(original.transaction_id)

    account = await account_service.find_by_id(db, original.account_id)

    refund_cents = original.amount_cents
    balance_before = account.balance_cents
    balance_after = balance_before + refund_cents

    await account_service.apply_delta(db, account, refund_cents)
    await ledger_service.mark_refunded(db, original)
    refund_txn = await ledger_service.record(
        db,
        account,
        TRANSACTION_CREDIT,
        refund_cents,
        balance_after,
        prefix=ledger_service.REFUND_PREFIX,
        shuttle_id=original.shuttle_id,
        driver_id=original.driver_id,
        route_id=original.route_id,
        trip_id=original.trip_id,
        related_transaction_id=original.transaction_id,
        description=reason,
    )

    logger.info(
        "Refund %s of %s: %s +%s (%s -> %s)",
        refund_txn.transaction_id, original.transaction_id,
        account.full_name, refund_cents, balance_before, balance_after,
    )

    result = {
        "transaction_id": original.transaction_id,
        "refund_id": refund_txn.transaction_id,
        "name": account.full_name,
        "amount_cents": refund_cents,
        "new_balance_cents": balance_after,
    }
    receipt = RefundReceipt(
        account_email=account.email,
        account_name=account.full_name,
        refund_cents=refund_cents,
        previous_balance_cents=balance_before,
        new_balance_cents=balance_after,
        transaction_id=refund_txn.transaction_id,
        original_transaction_id=original.transaction_id,
        reason=reason,
    )
    return result, receipt


async def refund(
    db: AsyncSession,
    transaction_ids: list[str],
    reason: str | None = None,
) -> tuple[dict, list[RefundReceipt]]:
    """
    Fully refund each referenced debit, independently.

    For every reference (external transaction id or internal UUID): credit
    the original amount back, flip the original to Refunded and append a new
    credit row with its own RFD id and snapshot. The original row's amount
    and snapshot stay as they were.

    Args:
        db: Database session.
        transaction_ids: References to refund, processed in order.
        reason: Shown on the refund row and receipt.

    Returns:
        Tuple of ({refunded, failed, results, errors}, refund receipts).
    """
    reason = reason or DEFAULT_REFUND_REASON
    results: list[dict] = []
    errors: list[dict] = []
    receipts: list[RefundReceipt] = []

    logger.info("Processing refunds for %d transactions", len(transaction_ids))

    for reference in transaction_ids:
        try:
            async with db.begin_nested():
                result, receipt = await _refund_one(db, reference, reason)
        except NUCashError as exc:
            logger.warning("Refund of %s failed: %s", reference, exc.detail)
            errors.append({"transaction_id": reference, **_item_error(exc)})
            continue
        except Exception as exc:
            logger.exception("Refund of %s failed unexpectedly", reference)
            errors.append({"transaction_id": reference, **_item_error(exc)})
            continue
        results.append(result)
        receipts.append(receipt)

    summary = {
        "refunded": len(results),
        "failed": len(errors),
        "results": results,
        "errors": errors,
    }
    return summary, receipts


async def _sync_one(
    db: AsyncSession,
    device_id: str | None,
    entry: dict,
    negative_limit: int | None,
) -> dict:
    offline_id = entry.get("offline_id")
    idempotency_key = f"{device_id or 'unknown'}:{offline_id}" if offline_id else None

    if idempotency_key is not None:
        existing = await ledger_service.find_by_idempotency_key(db, idempotency_key)
        if existing is not None:
            raise DuplicateOfflineEntryError(idempotency_key, existing.transaction_id)

    account = await account_service.find_by_rfid(db, entry["rfid_uid"])

    fare = entry.get("fare_cents") or settings.DEFAULT_FARE_CENTS
    balance_before = account.balance_cents
    balance_after = balance_before - fare

    # negative_limit is only passed when live rules are enforced
    if negative_limit is not None:
        if not account.is_active:
            raise AccountInactiveError(account.id)
        if balance_after < negative_limit:
            raise InsufficientBalanceError(
                account_id=account.id,
                current_balance_cents=balance_before,
                fare_cents=fare,
                negative_limit_cents=negative_limit,
            )

    await account_service.apply_delta(db, account, -fare)
    txn = await ledger_service.record(
        db,
        account,
        TRANSACTION_DEBIT,
        fare,
        balance_after,
        shuttle_id=entry.get("shuttle_id"),
        driver_id=entry.get("driver_id"),
        route_id=entry.get("route_id"),
        device_id=device_id,
        idempotency_key=idempotency_key,
    )

    logger.info(
        "Synced %s: %s paid %s (%s -> %s)",
        txn.transaction_id, account.full_name, fare, balance_before, balance_after,
    )

    return {
        "rfid_uid": account.rfid_uid,
        "offline_id": offline_id,
        "name": account.full_name,
        "amount_cents": fare,
        "new_balance_cents": balance_after,
        "transaction_id": txn.transaction_id,
    }


async def sync(
    db: AsyncSession,
    device_id: str | None,
    entries: list[dict],
) -> dict:
    """
    Replay fare payments collected by a reader while it was offline.

    Entries are debited in array order, each independently. The fare is the
    entry's own fare or DEFAULT_FARE_CENTS; route and system fares are not
    consulted.

    Args:
        db: Database session.
        device_id: The reader that collected the entries.
        entries: Dicts with rfid_uid and optional fare_cents, shuttle_id,
            driver_id, route_id, offline_id.

    Returns:
        {processed: count, rejected: [...], details: [...]}
    """
    negative_limit = None
    if settings.SYNC_ENFORCE_LIVE_RULES:
        negative_limit = await settings_service.get_negative_limit(db)

    logger.info("Syncing %d offline transactions from %s", len(entries), device_id)

    processed: list[dict] = []
    rejected: list[dict] = []

    for entry in entries:
        try:
            async with db.begin_nested():
                detail = await _sync_one(db, device_id, entry, negative_limit)
        except NUCashError as exc:
            logger.warning("Sync entry for %s rejected: %s", entry.get("rfid_uid"), exc.detail)
            rejected.append(_rejection(entry, exc))
            continue
        except Exception as exc:
            logger.exception("Sync entry for %s failed unexpectedly", entry.get("rfid_uid"))
            rejected.append(_rejection(entry, exc))
            continue
        processed.append(detail)

    return {
        "processed": len(processed),
        "rejected": rejected,
        "details": processed,
    }
