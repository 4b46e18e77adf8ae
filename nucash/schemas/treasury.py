"""
Pydantic schemas for treasury endpoints (cash-in and registration).
"""

import uuid
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, model_validator


class CashInRequest(BaseModel):
    """
    Request body for POST /treasury/cash-in.

    The account is identified by exactly one of account_id, rfid_uid or
    school_uid. The amount range is enforced by the service so the error
    can report the configured bounds.
    """
    account_id: uuid.UUID | None = None
    rfid_uid: str | None = None
    school_uid: str | None = None
    amount_cents: int = Field(gt=0, description="Amount in centavos")
    admin_id: str | None = None

    @model_validator(mode="after")
    def exactly_one_reference(self):
        references = [self.account_id, self.rfid_uid, self.school_uid]
        if sum(ref is not None for ref in references) != 1:
            raise ValueError("Provide exactly one of account_id, rfid_uid, school_uid")
        return self


class CashInResponse(BaseModel):
    success: bool = True
    account_id: uuid.UUID
    school_uid: str
    name: str
    amount_cents: int
    previous_balance_cents: int
    new_balance_cents: int
    transaction_id: str


class RegisterRequest(BaseModel):
    """Request body for POST /treasury/register."""
    school_uid: str = Field(min_length=1, max_length=50)
    rfid_uid: str = Field(min_length=1, max_length=50)
    first_name: str = Field(min_length=1, max_length=100)
    middle_name: str | None = Field(None, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    role: Literal["student", "employee", "merchant"] = "student"
    pin: str = Field(pattern=r"^\d{6}$", description="Temporary 6-digit PIN")
