"""
Activation service: PIN change and OTP verification.

Accounts are registered inactive. Activation is two steps:
  1. set_new_pin(): the holder replaces the temporary PIN; an OTP is issued
     and e-mailed
  2. verify_otp(): the OTP is checked and the account becomes active

resend_otp() replaces an expired or lost OTP without touching the PIN.

Only after step 2 can the account pay fares or receive cash-in.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from nucash.exceptions import InvalidOtpError, OtpError
from nucash.models.account import Account
from nucash.security import generate_otp, hash_pin, otp_expiry
from nucash.services import account_service

logger = logging.getLogger(__name__)


async def set_new_pin(
    db: AsyncSession,
    account_id: uuid.UUID,
    new_pin: str,
) -> tuple[Account, str]:
    """
    Store a new PIN and issue an activation OTP.

    The PIN format (six digits) is validated by the request schema.

    Returns:
        Tuple of (Account, OTP to e-mail).
    """
    account = await account_service.find_by_id(db, account_id)

    otp = generate_otp()
    account.pin_hash = hash_pin(new_pin)
    account.otp_code = otp
    account.otp_expires_at = otp_expiry()
    await db.flush()

    logger.info("PIN updated and OTP issued for account %s", account.id)
    return account, otp


async def resend_otp(db: AsyncSession, account_id: uuid.UUID) -> tuple[Account, str]:
    """
    Issue a fresh OTP with a new expiry, leaving the PIN as it is.

    Any previously issued OTP stops working.

    Returns:
        Tuple of (Account, OTP to e-mail).
    """
    account = await account_service.find_by_id(db, account_id)

    otp = generate_otp()
    account.otp_code = otp
    account.otp_expires_at = otp_expiry()
    await db.flush()

    logger.info("OTP reissued for account %s", account.id)
    return account, otp


async def verify_otp(
    db: AsyncSession,
    account_id: uuid.UUID,
    otp: str,
    now: datetime | None = None,
) -> Account:
    """
    Check the pending OTP and activate the account.

    Raises:
        OtpError: If no OTP is pending or it has expired.
        InvalidOtpError: If the OTP doesn't match.
    """
    account = await account_service.find_by_id(db, account_id)
    now = now or datetime.now(timezone.utc)

    if not account.otp_code or account.otp_expires_at is None:
        raise OtpError("No OTP found. Please request a new one.")

    expires_at = account.otp_expires_at
    # SQLite hands back naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if now > expires_at:
        raise OtpError("OTP has expired. Please request a new one.")

    if account.otp_code != otp:
        raise InvalidOtpError()

    account.is_active = True
    account.otp_code = None
    account.otp_expires_at = None
    await db.flush()

    logger.info("Account %s activated", account.id)
    return account
