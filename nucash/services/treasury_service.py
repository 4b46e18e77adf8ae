"""
Treasury service: cash-in and account registration.

Cash-in flow:
  1. Resolve the account by id, RFID or school id
  2. Reject amounts outside [MIN_CASH_IN_CENTS, MAX_CASH_IN_CENTS]
  3. Reject inactive accounts (holders activate before loading money)
  4. Credit the balance, then append the credit row with its snapshot

Registration flow:
  1. Reject an RFID, school id or e-mail that is already registered
  2. Create the account inactive with a zero balance and the hashed
     temporary PIN
  3. The router e-mails the temporary PIN; activation happens later via
     activation_service
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nucash.config import settings
from nucash.exceptions import (
    AccountInactiveError,
    DuplicateEmailError,
    DuplicateRfidError,
    DuplicateSchoolIdError,
    InvalidAmountError,
)
from nucash.models.account import Account
from nucash.models.transaction import TRANSACTION_CREDIT
from nucash.security import hash_pin
from nucash.services import account_service, ledger_service
from nucash.services.notification_service import CashInReceipt

logger = logging.getLogger(__name__)


async def cash_in(
    db: AsyncSession,
    amount_cents: int,
    *,
    account_id: uuid.UUID | None = None,
    rfid_uid: str | None = None,
    school_uid: str | None = None,
    admin_id: str | None = None,
) -> CashInReceipt:
    """
    Load money onto an account at the treasury counter.

    Exactly one of account_id, rfid_uid or school_uid is used, in that order
    of preference.

    Raises:
        InvalidAmountError: If the amount is outside the configured range.
        AccountNotFoundError: If the account doesn't resolve.
        AccountInactiveError: If the account hasn't been activated.
    """
    if not settings.MIN_CASH_IN_CENTS <= amount_cents <= settings.MAX_CASH_IN_CENTS:
        raise InvalidAmountError(
            amount_cents, settings.MIN_CASH_IN_CENTS, settings.MAX_CASH_IN_CENTS
        )

    if account_id is not None:
        account = await account_service.find_by_id(db, account_id)
    elif rfid_uid is not None:
        account = await account_service.find_by_rfid(db, rfid_uid)
    else:
        account = await account_service.find_by_school_uid(db, school_uid)

    if not account.is_active:
        raise AccountInactiveError(account.id)

    balance_before = account.balance_cents
    balance_after = balance_before + amount_cents

    await account_service.apply_delta(db, account, amount_cents)
    txn = await ledger_service.record(
        db,
        account,
        TRANSACTION_CREDIT,
        amount_cents,
        balance_after,
        admin_id=admin_id,
        description="Cash-in",
    )

    logger.info(
        "Cash-in %s: %s +%s (%s -> %s) by %s",
        txn.transaction_id, account.school_uid, amount_cents,
        balance_before, balance_after, admin_id or "treasury",
    )

    return CashInReceipt(
        account_id=account.id,
        school_uid=account.school_uid,
        account_email=account.email,
        account_name=account.full_name,
        amount_cents=amount_cents,
        previous_balance_cents=balance_before,
        new_balance_cents=balance_after,
        transaction_id=txn.transaction_id,
    )


async def register_account(
    db: AsyncSession,
    school_uid: str,
    rfid_uid: str,
    first_name: str,
    last_name: str,
    email: str,
    pin: str,
    middle_name: str | None = None,
    role: str = "student",
) -> Account:
    """
    Register a new, inactive, zero-balance account.

    Raises:
        DuplicateRfidError / DuplicateSchoolIdError / DuplicateEmailError:
            If any of the unique identifiers is already taken.
    """
    email = email.strip().lower()

    if (await db.execute(select(Account.id).where(Account.rfid_uid == rfid_uid))).first():
        raise DuplicateRfidError(rfid_uid)
    if (await db.execute(select(Account.id).where(Account.school_uid == school_uid))).first():
        raise DuplicateSchoolIdError(school_uid)
    if (await db.execute(select(Account.id).where(Account.email == email))).first():
        raise DuplicateEmailError(email)

    account = Account(
        school_uid=school_uid,
        rfid_uid=rfid_uid,
        first_name=first_name.strip(),
        middle_name=middle_name.strip() if middle_name else None,
        last_name=last_name.strip(),
        email=email,
        role=role,
        balance_cents=0,
        is_active=False,
        pin_hash=hash_pin(pin),
    )
    db.add(account)
    await db.flush()

    logger.info("Registered account %s (%s)", account.id, school_uid)
    return account
