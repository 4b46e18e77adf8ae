"""
SystemSetting model: the global fare settings, a single row.

Both columns are nullable: an unset value falls back to the defaults in
nucash.config (DEFAULT_FARE_CENTS / DEFAULT_NEGATIVE_LIMIT_CENTS).
"""

from datetime import datetime, timezone

from sqlalchemy import Integer, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from nucash.database import Base


SYSTEM_SETTING_ID = 1


class SystemSetting(Base):
    __tablename__ = "system_settings"

    __table_args__ = (
        CheckConstraint(
            "negative_limit_cents IS NULL OR negative_limit_cents <= 0",
            name="ck_system_settings_non_positive_limit",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, default=SYSTEM_SETTING_ID)

    current_fare_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Most negative balance a fare payment may leave (e.g. -1400)
    negative_limit_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
