"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientBalanceError)
without importing HTTP concepts. The handlers registered here translate them
into JSON responses of the form {"detail": ..., "error_type": ..., ...context}.

Batch operations (refund, sync) catch errors per item and report them in the
batch response, with the same error_type, instead of letting them reach
these handlers.

Exception hierarchy:
    NUCashError (base)
    ├── AccountNotFoundError           - account id / RFID / school id doesn't resolve
    ├── TransactionNotFoundError       - transaction reference doesn't resolve
    ├── AccountInactiveError           - debit or cash-in on an inactive account
    ├── InsufficientBalanceError       - debit would breach the negative floor
    ├── AlreadyRefundedError           - refund of a Refunded transaction
    ├── NotRefundableError             - refund of a credit
    ├── DuplicateRfidError             - RFID already associated with an account
    ├── DuplicateSchoolIdError         - school id already registered
    ├── DuplicateEmailError            - e-mail already registered
    ├── InvalidAmountError             - amount outside the configured range
    ├── OtpError                       - no OTP issued, or OTP expired
    │   └── InvalidOtpError            - OTP doesn't match
    ├── DuplicateOfflineEntryError     - offline entry replayed (sync only)
    ├── ConcurrentBalanceUpdateError   - stale compare-and-swap balance write
    └── PersistenceInconsistencyError  - balance written, ledger row not
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class NUCashError(Exception):
    """Base exception for all NUCash domain errors."""

    error_type = "nucash_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class AccountNotFoundError(NUCashError):
    """Raised when an account reference (id, RFID, school id) doesn't resolve."""

    error_type = "account_not_found"

    def __init__(self, reference: uuid.UUID | str, detail: str | None = None):
        self.reference = reference
        super().__init__(detail or f"Account {reference} not found")


class TransactionNotFoundError(NUCashError):
    """Raised when a transaction reference doesn't resolve."""

    error_type = "transaction_not_found"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Transaction {reference} not found")


class AccountInactiveError(NUCashError):
    """Raised when money is moved on an account that hasn't been activated."""

    error_type = "account_inactive"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__("Account is inactive")


class InsufficientBalanceError(NUCashError):
    """
    Raised when a fare debit would leave the balance below the negative floor.

    Attributes:
        current_balance_cents: Balance before the attempted debit.
        fare_cents: The fare that was resolved for this payment.
        negative_limit_cents: The configured floor (a value <= 0).
    """

    error_type = "insufficient_balance"

    def __init__(
        self,
        account_id: uuid.UUID,
        current_balance_cents: int,
        fare_cents: int,
        negative_limit_cents: int,
    ):
        self.account_id = account_id
        self.current_balance_cents = current_balance_cents
        self.fare_cents = fare_cents
        self.negative_limit_cents = negative_limit_cents
        super().__init__("Insufficient balance. Please recharge your card.")


class AlreadyRefundedError(NUCashError):
    """Raised when a refund targets a transaction already marked Refunded."""

    error_type = "already_refunded"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__("Already refunded")


class NotRefundableError(NUCashError):
    """Raised when a refund targets a credit; only fare debits are refundable."""

    error_type = "not_refundable"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__("Only debit transactions can be refunded")


class DuplicateRfidError(NUCashError):
    """Raised when an RFID is already associated with another account."""

    error_type = "duplicate_rfid"

    def __init__(self, rfid_uid: str):
        self.rfid_uid = rfid_uid
        super().__init__(f"RFID {rfid_uid} is already registered to another account")


class DuplicateSchoolIdError(NUCashError):
    """Raised when registering a school id that already exists."""

    error_type = "duplicate_school_id"

    def __init__(self, school_uid: str):
        self.school_uid = school_uid
        super().__init__(f"School ID {school_uid} is already registered")


class DuplicateEmailError(NUCashError):
    """Raised when registering an e-mail that's already in use."""

    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidAmountError(NUCashError):
    """Raised when a cash-in amount is outside the configured range."""

    error_type = "invalid_amount"

    def __init__(self, amount_cents: int, min_cents: int, max_cents: int):
        self.amount_cents = amount_cents
        self.min_cents = min_cents
        self.max_cents = max_cents
        super().__init__(
            f"Amount must be between {min_cents} and {max_cents} cents, "
            f"got {amount_cents}"
        )


class OtpError(NUCashError):
    """Raised when no OTP is pending for the account or it has expired."""

    error_type = "otp_error"


class InvalidOtpError(OtpError):
    """Raised when the submitted OTP doesn't match the pending one."""

    error_type = "invalid_otp"

    def __init__(self):
        super().__init__("Invalid OTP")


class DuplicateOfflineEntryError(NUCashError):
    """
    Raised for an offline sync entry whose idempotency key was already
    consumed by an earlier sync. Only ever reported inside a sync response.
    """

    error_type = "duplicate_offline_entry"

    def __init__(self, idempotency_key: str, transaction_id: str):
        self.idempotency_key = idempotency_key
        self.transaction_id = transaction_id
        super().__init__(f"Already synced as {transaction_id}")


class ConcurrentBalanceUpdateError(NUCashError):
    """Raised when a compare-and-swap balance write finds the account changed."""

    error_type = "concurrent_update"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(
            f"Balance of account {account_id} changed concurrently; retry the operation"
        )


class PersistenceInconsistencyError(NUCashError):
    """
    Raised when the balance write went through but the ledger row could not
    be persisted. The request's transaction is not committed afterwards.
    """

    error_type = "persistence_inconsistency"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__("Ledger write failed")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(AccountNotFoundError)
    async def account_not_found_handler(
        request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(TransactionNotFoundError)
    async def transaction_not_found_handler(
        request: Request, exc: TransactionNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(AccountInactiveError)
    async def account_inactive_handler(
        request: Request, exc: AccountInactiveError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(InsufficientBalanceError)
    async def insufficient_balance_handler(
        request: Request, exc: InsufficientBalanceError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,  # the request was valid but the floor rejects it
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "requires_recharge": True,
                "current_balance_cents": exc.current_balance_cents,
                "fare_cents": exc.fare_cents,
                "negative_limit_cents": exc.negative_limit_cents,
            },
        )

    @app.exception_handler(AlreadyRefundedError)
    async def already_refunded_handler(
        request: Request, exc: AlreadyRefundedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(NotRefundableError)
    async def not_refundable_handler(
        request: Request, exc: NotRefundableError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(DuplicateRfidError)
    async def duplicate_rfid_handler(
        request: Request, exc: DuplicateRfidError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(DuplicateSchoolIdError)
    async def duplicate_school_id_handler(
        request: Request, exc: DuplicateSchoolIdError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(DuplicateEmailError)
    async def duplicate_email_handler(
        request: Request, exc: DuplicateEmailError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(InvalidAmountError)
    async def invalid_amount_handler(
        request: Request, exc: InvalidAmountError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "min_cents": exc.min_cents,
                "max_cents": exc.max_cents,
            },
        )

    @app.exception_handler(InvalidOtpError)
    async def invalid_otp_handler(
        request: Request, exc: InvalidOtpError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(OtpError)
    async def otp_error_handler(
        request: Request, exc: OtpError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(ConcurrentBalanceUpdateError)
    async def concurrent_update_handler(
        request: Request, exc: ConcurrentBalanceUpdateError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(PersistenceInconsistencyError)
    async def persistence_inconsistency_handler(
        request: Request, exc: PersistenceInconsistencyError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )
