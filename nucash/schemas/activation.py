"""
Pydantic schemas for account activation (PIN change and OTP).
"""

import uuid

from pydantic import BaseModel, Field


class SetPinRequest(BaseModel):
    """Request body for POST /activation/set-pin."""
    account_id: uuid.UUID
    new_pin: str = Field(pattern=r"^\d{6}$", description="New 6-digit PIN")


class ResendOtpRequest(BaseModel):
    """Request body for POST /activation/resend-otp."""
    account_id: uuid.UUID


class VerifyOtpRequest(BaseModel):
    """Request body for POST /activation/verify-otp."""
    account_id: uuid.UUID
    otp: str = Field(min_length=6, max_length=6)


class ActivationResponse(BaseModel):
    account_id: uuid.UUID
    is_active: bool
    message: str
