"""
Pydantic schemas for the shuttle endpoints (pay, refund, sync).

All monetary amounts are in integer centavos (PHP 15.00 = 1500).
"""

from pydantic import BaseModel, Field


class PayRequest(BaseModel):
    """Request body for POST /shuttle/pay."""
    rfid_uid: str = Field(min_length=1, max_length=50)
    fare_cents: int | None = Field(
        None, gt=0, description="Explicit fare; route and system fares apply when omitted"
    )
    shuttle_id: str | None = None
    driver_id: str | None = None
    route_id: str | None = None
    trip_id: str | None = None


class PayResponse(BaseModel):
    """Receipt returned for a successful fare payment."""
    success: bool = True
    name: str
    rfid_uid: str
    fare_cents: int
    previous_balance_cents: int
    new_balance_cents: int
    transaction_id: str


class RefundRequest(BaseModel):
    """Request body for POST /shuttle/refund."""
    transaction_ids: list[str] = Field(min_length=1)
    reason: str | None = Field(None, max_length=255)


class RefundResult(BaseModel):
    transaction_id: str
    refund_id: str
    name: str
    amount_cents: int
    new_balance_cents: int


class BatchItemError(BaseModel):
    transaction_id: str
    error_type: str
    error: str


class RefundResponse(BaseModel):
    """Per-item outcome of a refund batch."""
    refunded: int
    failed: int
    results: list[RefundResult]
    errors: list[BatchItemError]


class SyncEntry(BaseModel):
    """One payment collected by a reader while offline."""
    rfid_uid: str = Field(min_length=1, max_length=50)
    fare_cents: int | None = Field(None, gt=0)
    shuttle_id: str | None = None
    driver_id: str | None = None
    route_id: str | None = None
    offline_id: str | None = Field(
        None,
        max_length=50,
        description="Reader-side id; repeated entries with the same id are synced once",
    )


class SyncRequest(BaseModel):
    """Request body for POST /shuttle/sync."""
    device_id: str | None = Field(None, max_length=50)
    transactions: list[SyncEntry] = Field(min_length=1)


class SyncDetail(BaseModel):
    rfid_uid: str
    offline_id: str | None
    name: str
    amount_cents: int
    new_balance_cents: int
    transaction_id: str


class SyncRejection(BaseModel):
    rfid_uid: str | None
    offline_id: str | None
    error_type: str
    error: str


class SyncResponse(BaseModel):
    """Per-entry outcome of an offline sync."""
    processed: int
    rejected: list[SyncRejection]
    details: list[SyncDetail]
