"""
Treasury router: counter operations.

Endpoints:
  POST /treasury/cash-in                        - Load money onto an account
  POST /treasury/register                       - Register a new card holder
  GET  /treasury/transactions/{transaction_id}  - Look up one ledger row
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nucash.database import get_db
from nucash.dependencies import get_notifier
from nucash.schemas.account import AccountResponse
from nucash.schemas.transaction import TransactionResponse
from nucash.schemas.treasury import CashInRequest, CashInResponse, RegisterRequest
from nucash.services import ledger_service, treasury_service
from nucash.services.notification_service import Notifier, notify

router = APIRouter()


@router.post(
    "/cash-in",
    response_model=CashInResponse,
    summary="Cash in to an account",
)
async def cash_in(
    request: CashInRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Credit an active account. The amount must be within the configured
    cash-in range (**400** otherwise).
    """
    receipt = await treasury_service.cash_in(
        db=db,
        amount_cents=request.amount_cents,
        account_id=request.account_id,
        rfid_uid=request.rfid_uid,
        school_uid=request.school_uid,
        admin_id=request.admin_id,
    )
    background_tasks.add_task(notify, notifier.send_cash_in_receipt, receipt)

    return CashInResponse(
        account_id=receipt.account_id,
        school_uid=receipt.school_uid,
        name=receipt.account_name,
        amount_cents=receipt.amount_cents,
        previous_balance_cents=receipt.previous_balance_cents,
        new_balance_cents=receipt.new_balance_cents,
        transaction_id=receipt.transaction_id,
    )


@router.post(
    "/register",
    response_model=AccountResponse,
    status_code=201,
    summary="Register a card holder",
)
async def register(
    request: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Create an inactive account with a zero balance and e-mail the temporary
    PIN. The holder activates it through /activation.
    """
    account = await treasury_service.register_account(
        db=db,
        school_uid=request.school_uid,
        rfid_uid=request.rfid_uid,
        first_name=request.first_name,
        middle_name=request.middle_name,
        last_name=request.last_name,
        email=request.email,
        role=request.role,
        pin=request.pin,
    )
    background_tasks.add_task(
        notify,
        notifier.send_temporary_pin,
        account.email,
        request.pin,
        account.full_name,
        account.school_uid,
    )
    return account


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a transaction",
)
async def get_transaction(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Look up a transaction by its TXN-/RFD- id or internal UUID."""
    return await ledger_service.find_transaction(db, transaction_id)
