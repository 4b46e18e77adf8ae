"""
System administration router.

Endpoints:
  POST /sysad/transfer-card       - Move an account to a new RFID card
  GET  /sysad/settings            - Current fare and negative limit
  PUT  /sysad/settings            - Replace the fare and negative limit
  GET  /sysad/routes              - List route fares
  PUT  /sysad/routes/{route_id}   - Create or update a route fare
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nucash.database import get_db
from nucash.schemas.account import AccountResponse
from nucash.schemas.settings import (
    RouteRequest,
    RouteResponse,
    SystemSettingsRequest,
    SystemSettingsResponse,
    TransferCardRequest,
)
from nucash.services import account_service, settings_service

router = APIRouter()


async def _settings_view(db: AsyncSession) -> SystemSettingsResponse:
    row = await settings_service.get_system_settings(db)
    return SystemSettingsResponse(
        current_fare_cents=row.current_fare_cents if row else None,
        negative_limit_cents=row.negative_limit_cents if row else None,
        effective_fare_cents=await settings_service.resolve_fare(db),
        effective_negative_limit_cents=await settings_service.get_negative_limit(db),
    )


@router.post(
    "/transfer-card",
    response_model=AccountResponse,
    summary="Transfer an account to a new card",
)
async def transfer_card(
    request: TransferCardRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Re-point the account from the old RFID to the new one. Balance and
    transaction history stay with the account.
    """
    return await account_service.transfer_card(
        db, request.old_rfid_uid, request.new_rfid_uid
    )


@router.get(
    "/settings",
    response_model=SystemSettingsResponse,
    summary="Get fare settings",
)
async def get_settings(db: AsyncSession = Depends(get_db)):
    return await _settings_view(db)


@router.put(
    "/settings",
    response_model=SystemSettingsResponse,
    summary="Update fare settings",
)
async def update_settings(
    request: SystemSettingsRequest,
    db: AsyncSession = Depends(get_db),
):
    """A null value falls back to the configured default."""
    await settings_service.update_system_settings(
        db, request.current_fare_cents, request.negative_limit_cents
    )
    return await _settings_view(db)


@router.get(
    "/routes",
    response_model=list[RouteResponse],
    summary="List routes",
)
async def list_routes(db: AsyncSession = Depends(get_db)):
    return await settings_service.list_routes(db)


@router.put(
    "/routes/{route_id}",
    response_model=RouteResponse,
    summary="Create or update a route",
)
async def upsert_route(
    route_id: str,
    request: RouteRequest,
    db: AsyncSession = Depends(get_db),
):
    return await settings_service.upsert_route(
        db, route_id, request.name, request.fare_cents
    )
