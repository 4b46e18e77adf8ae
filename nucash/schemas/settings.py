"""
Pydantic schemas for fare configuration (system settings and routes).
"""

from pydantic import BaseModel, Field


class SystemSettingsRequest(BaseModel):
    """Request body for PUT /sysad/settings. A null value clears the setting."""
    current_fare_cents: int | None = Field(None, gt=0)
    negative_limit_cents: int | None = Field(None, le=0)


class SystemSettingsResponse(BaseModel):
    """Stored values plus what payments currently resolve to."""
    current_fare_cents: int | None
    negative_limit_cents: int | None
    effective_fare_cents: int
    effective_negative_limit_cents: int


class RouteRequest(BaseModel):
    """Request body for PUT /sysad/routes/{route_id}."""
    name: str | None = Field(None, max_length=100)
    fare_cents: int | None = Field(None, gt=0)


class RouteResponse(BaseModel):
    route_id: str
    name: str | None
    fare_cents: int | None

    model_config = {"from_attributes": True}


class TransferCardRequest(BaseModel):
    """Request body for POST /sysad/transfer-card."""
    old_rfid_uid: str = Field(min_length=1, max_length=50)
    new_rfid_uid: str = Field(min_length=1, max_length=50)
