"""
Accounts router: read-only account views.

Endpoints:
  GET /accounts/rfid/{rfid_uid}              - Account holding a card
  GET /accounts/{account_id}                 - Account details
  GET /accounts/{account_id}/balance         - Cached vs. ledger balance
  GET /accounts/{account_id}/transactions    - Ledger rows, newest first

The /rfid/ route is declared first so "rfid" is never parsed as a UUID.
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from nucash.database import get_db
from nucash.schemas.account import AccountResponse, BalanceResponse
from nucash.schemas.transaction import TransactionResponse
from nucash.services import account_service, ledger_service

router = APIRouter()


@router.get(
    "/rfid/{rfid_uid}",
    response_model=AccountResponse,
    summary="Get the account holding a card",
)
async def get_account_by_rfid(
    rfid_uid: str,
    db: AsyncSession = Depends(get_db),
):
    return await account_service.find_by_rfid(db, rfid_uid)


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get account details",
)
async def get_account(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await account_service.find_by_id(db, account_id)


@router.get(
    "/{account_id}/balance",
    response_model=BalanceResponse,
    summary="Get account balance",
)
async def get_balance(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Returns the stored balance together with the balance replayed from the
    ledger. `match: false` means the two have drifted apart.
    """
    return await account_service.get_balance(db, account_id)


@router.get(
    "/{account_id}/transactions",
    response_model=list[TransactionResponse],
    summary="List transactions for an account",
)
async def list_transactions(
    account_id: uuid.UUID,
    type: Literal["credit", "debit"] | None = Query(None, description="Filter by type"),
    status: Literal["Completed", "Refunded"] | None = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List the account's ledger rows, newest first."""
    await account_service.find_by_id(db, account_id)
    return await ledger_service.list_for_account(
        db=db,
        account_id=account_id,
        type_filter=type,
        status_filter=status,
        limit=limit,
        offset=offset,
    )
