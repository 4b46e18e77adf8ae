"""
Route model: a shuttle route and its optional fare.

A route fare, when set, takes precedence over the system-wide current fare
for payments made on that route.
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from nucash.database import Base


class Route(Base):
    __tablename__ = "routes"

    __table_args__ = (
        CheckConstraint(
            "fare_cents IS NULL OR fare_cents > 0",
            name="ck_routes_positive_fare",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Identifier the mobile app sends with each payment
    route_id: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    fare_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
