"""
Account model: one wallet per student, employee or merchant.

Each account has:
  - A school (or merchant) identifier, unique
  - An RFID tag association, unique; a card transfer re-points it to a new
    physical card without touching the account's history
  - A balance in signed integer centavos
  - An activation flag gating fare payments and cash-in

Balance management:
  `balance_cents` is the current balance. Every write to it is paired with a
  Transaction row whose `balance_cents` snapshot equals the new value, so the
  balance can always be reconstructed by replaying the ledger.

  Unlike a bank account the balance may go negative: live fare payments are
  allowed down to the configured negative limit (a small overdraft), so there
  is deliberately no non-negative CHECK constraint here.

  `version` counts balance writes. The compare-and-swap write path in
  account_service uses it to detect a concurrent update.

Activation:
  Accounts are registered inactive with a temporary PIN. The holder sets a
  new PIN, receives an OTP by e-mail and verifies it; only then is
  `is_active` set. The PIN hash and pending OTP live on the account row.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nucash.database import Base


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # School id for students/employees, merchant id for merchants
    school_uid: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    # Secondary lookup key used by the shuttle readers
    rfid_uid: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )

    # "student", "employee" or "merchant"
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="student",
    )

    # Signed balance in centavos
    balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # --- Activation state ---
    pin_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    otp_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="account",
        order_by="Transaction.created_at",
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)
