"""
Activation router.

  POST /activation/set-pin     - Replace the temporary PIN, e-mail an OTP
  POST /activation/resend-otp  - E-mail a fresh OTP, PIN unchanged
  POST /activation/verify-otp  - Verify the OTP and activate the account
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nucash.database import get_db
from nucash.dependencies import get_notifier
from nucash.schemas.activation import (
    ActivationResponse,
    ResendOtpRequest,
    SetPinRequest,
    VerifyOtpRequest,
)
from nucash.services import activation_service
from nucash.services.notification_service import Notifier, notify

router = APIRouter()


@router.post(
    "/set-pin",
    response_model=ActivationResponse,
    summary="Set a new PIN",
)
async def set_pin(
    request: SetPinRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    account, otp = await activation_service.set_new_pin(db, request.account_id, request.new_pin)
    background_tasks.add_task(
        notify, notifier.send_activation_otp, account.email, otp, account.full_name
    )
    return ActivationResponse(
        account_id=account.id,
        is_active=account.is_active,
        message="OTP sent to your e-mail",
    )


@router.post(
    "/resend-otp",
    response_model=ActivationResponse,
    summary="Resend the activation OTP",
)
async def resend_otp(
    request: ResendOtpRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Issue a new OTP with a fresh expiry. The previous code no longer works."""
    account, otp = await activation_service.resend_otp(db, request.account_id)
    background_tasks.add_task(
        notify, notifier.send_activation_otp, account.email, otp, account.full_name
    )
    return ActivationResponse(
        account_id=account.id,
        is_active=account.is_active,
        message="OTP resent to your e-mail",
    )


@router.post(
    "/verify-otp",
    response_model=ActivationResponse,
    summary="Verify OTP and activate",
)
async def verify_otp(
    request: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
):
    """A wrong code is **401**; a missing or expired one is **400**."""
    account = await activation_service.verify_otp(db, request.account_id, request.otp)
    return ActivationResponse(
        account_id=account.id,
        is_active=account.is_active,
        message="Account activated",
    )
