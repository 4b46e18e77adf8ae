"""
Shuttle router: the endpoints called by shuttle card readers.

Endpoints:
  POST /shuttle/pay     - Debit one fare for a tapped RFID card
  POST /shuttle/refund  - Refund a batch of earlier fare payments
  POST /shuttle/sync    - Replay payments collected while the reader was offline

Receipts are e-mailed in the background after the response is produced.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nucash.database import get_db
from nucash.dependencies import get_notifier
from nucash.schemas.shuttle import (
    PayRequest,
    PayResponse,
    RefundRequest,
    RefundResponse,
    SyncRequest,
    SyncResponse,
)
from nucash.services import payment_service
from nucash.services.notification_service import Notifier, notify

router = APIRouter()


@router.post(
    "/pay",
    response_model=PayResponse,
    summary="Pay a shuttle fare",
)
async def pay(
    request: PayRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Debit one fare from the account holding the tapped card.

    The fare is the request's `fare_cents`, else the route fare, else the
    system fare, else the configured default. The balance may go negative
    down to the configured negative limit; beyond that the payment is
    declined with **422** and `requires_recharge: true`.
    """
    receipt = await payment_service.pay(
        db=db,
        rfid_uid=request.rfid_uid,
        fare_cents=request.fare_cents,
        shuttle_id=request.shuttle_id,
        driver_id=request.driver_id,
        route_id=request.route_id,
        trip_id=request.trip_id,
    )
    background_tasks.add_task(notify, notifier.send_payment_receipt, receipt)

    return PayResponse(
        name=receipt.account_name,
        rfid_uid=receipt.rfid_uid,
        fare_cents=receipt.fare_cents,
        previous_balance_cents=receipt.previous_balance_cents,
        new_balance_cents=receipt.new_balance_cents,
        transaction_id=receipt.transaction_id,
    )


@router.post(
    "/refund",
    response_model=RefundResponse,
    summary="Refund fare payments",
)
async def refund(
    request: RefundRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Refund each listed transaction in full, independently.

    A failure on one item (not found, already refunded, not a debit) is
    reported under `errors` and doesn't affect the others.
    """
    summary, receipts = await payment_service.refund(
        db=db,
        transaction_ids=request.transaction_ids,
        reason=request.reason,
    )
    for receipt in receipts:
        background_tasks.add_task(notify, notifier.send_refund_receipt, receipt)
    return summary


@router.post(
    "/sync",
    response_model=SyncResponse,
    summary="Sync offline payments",
)
async def sync(
    request: SyncRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Debit every payment a reader collected while offline, in order.

    Entries that fail (unknown card, replayed `offline_id`, and with live
    rules enforced, inactive or below-floor accounts) are listed under
    `rejected`.
    """
    return await payment_service.sync(
        db=db,
        device_id=request.device_id,
        entries=[entry.model_dump() for entry in request.transactions],
    )
