"""
Transaction model: the append-only ledger.

Every balance change creates exactly one Transaction row:

  - A fare payment (live or offline sync) creates one DEBIT
  - A treasury cash-in creates one CREDIT
  - A refund creates one new CREDIT and flips the refunded debit's status

Key fields:
  - transaction_id: external identifier shown to users ("TXN-…", "RFD-…")
  - transaction_type: "debit" or "credit"
  - amount_cents: always positive (the direction is implied by the type)
  - balance_cents: the account's balance immediately AFTER this row applied.
    It is a snapshot written once, never recomputed.
  - status: "Completed" or "Refunded"

Immutability:
  Rows are never updated except for the one-way status transition
  Completed -> Refunded. A refund leaves the original amount and snapshot
  untouched and records its own credit row, linked back through
  `related_transaction_id`.

Context columns (shuttle, route, driver, trip, merchant, admin, device) are
informational and play no part in the ledger invariant.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nucash.database import Base


TRANSACTION_DEBIT = "debit"
TRANSACTION_CREDIT = "credit"

STATUS_COMPLETED = "Completed"
STATUS_REFUNDED = "Refunded"


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        # Amount must always be positive - direction is indicated by type
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    transaction_id: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
    )

    transaction_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Balance snapshot after this transaction
    balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=STATUS_COMPLETED,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    # --- Context ---
    shuttle_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    driver_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    route_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    trip_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    merchant_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    admin_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    device_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # For refund credits: external id of the refunded transaction
    related_transaction_id: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True,
        index=True,
    )

    # "<device_id>:<offline_id>" for offline entries that carried a client key
    idempotency_key: Mapped[str | None] = mapped_column(
        String(200),
        unique=True,
        nullable=True,
    )

    # Creation order is the replay order
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    account: Mapped["Account"] = relationship(
        back_populates="transactions",
    )
