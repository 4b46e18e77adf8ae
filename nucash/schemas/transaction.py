"""
Pydantic schemas for ledger rows.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


class TransactionResponse(BaseModel):
    """Public representation of a ledger row."""
    id: uuid.UUID
    transaction_id: str
    transaction_type: str
    amount_cents: int
    balance_cents: int
    status: str
    account_id: uuid.UUID
    shuttle_id: str | None
    driver_id: str | None
    route_id: str | None
    trip_id: str | None
    admin_id: str | None
    device_id: str | None
    description: str | None
    related_transaction_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
