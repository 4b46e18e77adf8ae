"""
Notification service: e-mail receipts and activation messages.

Money-moving services return receipt objects; the routers hand them to the
Notifier through FastAPI BackgroundTasks, so e-mail is only attempted after
the response has been produced. A failed or slow send therefore never
changes the outcome of the payment, refund or cash-in it describes.

Delivery:
  SMTP via aiosmtplib, multipart/alternative with a plain-text and an HTML
  part. Nothing is sent unless EMAIL_ENABLED is set; accounts without an
  e-mail address are skipped.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Awaitable, Callable

import aiosmtplib

from nucash.config import Settings, settings as app_settings

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def format_pesos(amount_cents: int) -> str:
    """Render centavos as a peso string, e.g. -150 -> '-₱1.50'."""
    sign = "-" if amount_cents < 0 else ""
    whole, cents = divmod(abs(amount_cents), 100)
    return f"{sign}₱{whole:,}.{cents:02d}"


# ---------------------------------------------------------------------------
# Receipt payloads
# ---------------------------------------------------------------------------

@dataclass
class PaymentReceipt:
    account_email: str | None
    account_name: str
    rfid_uid: str
    fare_cents: int
    previous_balance_cents: int
    new_balance_cents: int
    transaction_id: str
    merchant_name: str
    timestamp: datetime = field(default_factory=_now)


@dataclass
class RefundReceipt:
    account_email: str | None
    account_name: str
    refund_cents: int
    previous_balance_cents: int
    new_balance_cents: int
    transaction_id: str
    original_transaction_id: str
    reason: str
    timestamp: datetime = field(default_factory=_now)


@dataclass
class CashInReceipt:
    account_id: Any
    school_uid: str
    account_email: str | None
    account_name: str
    amount_cents: int
    previous_balance_cents: int
    new_balance_cents: int
    transaction_id: str
    timestamp: datetime = field(default_factory=_now)


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------

class Notifier:
    """Sends NUCash e-mails over SMTP."""

    def __init__(self, config: Settings | None = None):
        self.config = config or app_settings

    async def send_payment_receipt(self, receipt: PaymentReceipt) -> bool:
        subject = f"NUCash Payment Receipt - {receipt.transaction_id}"
        lines = [
            f"Hi {receipt.account_name},",
            "",
            f"You paid {format_pesos(receipt.fare_cents)} to {receipt.merchant_name}.",
            f"Previous balance: {format_pesos(receipt.previous_balance_cents)}",
            f"New balance: {format_pesos(receipt.new_balance_cents)}",
            f"Transaction ID: {receipt.transaction_id}",
            f"Date: {receipt.timestamp:%Y-%m-%d %H:%M:%S %Z}",
        ]
        if receipt.new_balance_cents < 0:
            lines += [
                "",
                "Your balance is negative. Please cash in at the treasury "
                "before your next ride.",
            ]
        return await self._deliver(receipt.account_email, subject, lines)

    async def send_refund_receipt(self, receipt: RefundReceipt) -> bool:
        subject = f"NUCash Refund - {receipt.transaction_id}"
        lines = [
            f"Hi {receipt.account_name},",
            "",
            f"{format_pesos(receipt.refund_cents)} has been refunded to your card.",
            f"Reason: {receipt.reason}",
            f"Previous balance: {format_pesos(receipt.previous_balance_cents)}",
            f"New balance: {format_pesos(receipt.new_balance_cents)}",
            f"Refund ID: {receipt.transaction_id}",
            f"Original transaction: {receipt.original_transaction_id}",
            f"Date: {receipt.timestamp:%Y-%m-%d %H:%M:%S %Z}",
        ]
        return await self._deliver(receipt.account_email, subject, lines)

    async def send_cash_in_receipt(self, receipt: CashInReceipt) -> bool:
        subject = f"NUCash Cash-In Receipt - {receipt.transaction_id}"
        lines = [
            f"Hi {receipt.account_name},",
            "",
            f"{format_pesos(receipt.amount_cents)} was loaded to your card.",
            f"Previous balance: {format_pesos(receipt.previous_balance_cents)}",
            f"New balance: {format_pesos(receipt.new_balance_cents)}",
            f"Transaction ID: {receipt.transaction_id}",
            f"Date: {receipt.timestamp:%Y-%m-%d %H:%M:%S %Z}",
        ]
        return await self._deliver(receipt.account_email, subject, lines)

    async def send_temporary_pin(
        self,
        email: str,
        pin: str,
        full_name: str,
        school_uid: str,
    ) -> bool:
        # School ids are displayed as ####-###### when they have 10 digits
        if len(school_uid) == 10:
            school_uid = f"{school_uid[:4]}-{school_uid[4:]}"
        lines = [
            f"Hi {full_name},",
            "",
            f"Your NUCash account ({school_uid}) has been registered.",
            f"Temporary PIN: {pin}",
            "",
            "Change your PIN in the NUCash app to activate your account.",
        ]
        return await self._deliver(email, "Welcome to NUCash", lines)

    async def send_activation_otp(self, email: str, otp: str, full_name: str) -> bool:
        lines = [
            f"Hi {full_name},",
            "",
            f"Your NUCash activation code is {otp}.",
            f"It expires in {self.config.OTP_EXPIRE_MINUTES} minutes.",
        ]
        return await self._deliver(email, "NUCash Activation Code", lines)

    async def _deliver(self, to: str | None, subject: str, lines: list[str]) -> bool:
        if not self.config.EMAIL_ENABLED:
            logger.debug("E-mail disabled, not sending %r", subject)
            return False
        if not to:
            logger.info("No e-mail address, skipping %r", subject)
            return False

        text = "\n".join(lines)
        html = "".join(f"<p>{line}</p>" if line else "<br>" for line in lines)

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.config.EMAIL_FROM
        message["To"] = to
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.config.SMTP_HOST,
                port=self.config.SMTP_PORT,
                username=self.config.SMTP_USERNAME,
                password=self.config.SMTP_PASSWORD,
                start_tls=self.config.SMTP_USE_TLS,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception("Failed to send %r to %s", subject, to)
            return False

        logger.info("Sent %r to %s", subject, to)
        return True


async def notify(send: Callable[..., Awaitable[Any]], *args: Any) -> None:
    """
    Run one Notifier call as a fire-and-forget background task.

    Whatever the send raises is logged here; a background task has no caller
    left to report it to.
    """
    try:
        await send(*args)
    except Exception:
        logger.exception("Notification %s failed", getattr(send, "__name__", send))
