"""
Settings service: the fare and balance-floor configuration source.

Fare resolution (live payments):
  1. An explicit positive fare sent with the payment request
  2. The fare configured on the named route
  3. The system-wide current fare (system_settings row)
  4. DEFAULT_FARE_CENTS from the application config

The first source that yields a positive value wins; later sources are not
consulted once an earlier one succeeded.

Negative limit:
  The system_settings row's negative_limit_cents, or
  DEFAULT_NEGATIVE_LIMIT_CENTS when the row or the value is missing.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nucash.config import settings
from nucash.models.route import Route
from nucash.models.system_setting import SystemSetting, SYSTEM_SETTING_ID

logger = logging.getLogger(__name__)


async def get_system_settings(db: AsyncSession) -> SystemSetting | None:
    result = await db.execute(
        select(SystemSetting).where(SystemSetting.id == SYSTEM_SETTING_ID)
    )
    return result.scalar_one_or_none()


async def update_system_settings(
    db: AsyncSession,
    current_fare_cents: int | None,
    negative_limit_cents: int | None,
) -> SystemSetting:
    """Create or replace the system settings row. None clears a value."""
    row = await get_system_settings(db)
    if row is None:
        row = SystemSetting(id=SYSTEM_SETTING_ID)
        db.add(row)

    row.current_fare_cents = current_fare_cents
    row.negative_limit_cents = negative_limit_cents
    await db.flush()

    logger.info(
        "System settings updated: current_fare_cents=%s negative_limit_cents=%s",
        current_fare_cents, negative_limit_cents,
    )
    return row


async def get_negative_limit(db: AsyncSession) -> int:
    row = await get_system_settings(db)
    if row is not None and row.negative_limit_cents is not None:
        return row.negative_limit_cents
    return settings.DEFAULT_NEGATIVE_LIMIT_CENTS


async def get_route(db: AsyncSession, route_id: str) -> Route | None:
    result = await db.execute(select(Route).where(Route.route_id == route_id))
    return result.scalar_one_or_none()


async def upsert_route(
    db: AsyncSession,
    route_id: str,
    name: str | None,
    fare_cents: int | None,
) -> Route:
    """Create a route or update its name and fare."""
    route = await get_route(db, route_id)
    if route is None:
        route = Route(route_id=route_id)
        db.add(route)

    route.name = name
    route.fare_cents = fare_cents
    await db.flush()
    return route


async def list_routes(db: AsyncSession) -> list[Route]:
    result = await db.execute(select(Route).order_by(Route.route_id))
    return list(result.scalars().all())


async def resolve_fare(
    db: AsyncSession,
    explicit_fare_cents: int | None = None,
    route_id: str | None = None,
) -> int:
    """
    Resolve the fare for one live payment.

    Args:
        db: Database session.
        explicit_fare_cents: Fare supplied by the caller for this payment.
        route_id: Route the payment is made on, if known.

    Returns:
        The fare in cents (always positive).
    """
    if explicit_fare_cents is not None and explicit_fare_cents > 0:
        logger.debug("Using fare from request: %s", explicit_fare_cents)
        return explicit_fare_cents

    if route_id:
        route = await get_route(db, route_id)
        if route is not None and route.fare_cents and route.fare_cents > 0:
            logger.debug("Using fare from route %s: %s", route_id, route.fare_cents)
            return route.fare_cents

    row = await get_system_settings(db)
    if row is not None and row.current_fare_cents and row.current_fare_cents > 0:
        logger.debug("Using fare from system settings: %s", row.current_fare_cents)
        return row.current_fare_cents

    return settings.DEFAULT_FARE_CENTS
