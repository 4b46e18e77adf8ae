"""
Pydantic schemas for Account endpoints.

PIN hashes and OTP state are never part of a response.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


class AccountResponse(BaseModel):
    """Public representation of an NUCash account."""
    id: uuid.UUID
    school_uid: str
    rfid_uid: str
    first_name: str
    middle_name: str | None
    last_name: str
    email: str
    role: str
    balance_cents: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    """
    Balance check response - includes both cached and replayed values.

    `match` is False when the cached balance disagrees with the sum of the
    account's ledger rows.
    """
    account_id: uuid.UUID
    balance_cents: int
    ledger_balance_cents: int
    match: bool
    is_active: bool
