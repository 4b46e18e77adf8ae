"""
Security utilities: PIN hashing and one-time passwords.

1. PIN HASHING (Argon2)
   - Card PINs are never stored in plaintext, neither the temporary PIN
     issued at registration nor the PIN the holder chooses on activation
   - passlib's CryptContext handles hashing and verification; a future
     scheme migration only needs a new entry in `schemes`

2. ONE-TIME PASSWORDS
   - Six-digit numeric codes e-mailed during activation
   - Generated with `secrets`, not `random`, so codes are unpredictable
"""

import secrets
import string
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

from nucash.config import settings


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

OTP_LENGTH = 6


def hash_pin(plain_pin: str) -> str:
    """Hash a PIN using Argon2id."""
    return pwd_context.hash(plain_pin)


def verify_pin(plain_pin: str, hashed_pin: str) -> bool:
    """Verify a PIN against a stored Argon2 hash (constant-time)."""
    return pwd_context.verify(plain_pin, hashed_pin)


def generate_otp() -> str:
    """Return a fresh six-digit OTP, leading zeros allowed."""
    return "".join(secrets.choice(string.digits) for _ in range(OTP_LENGTH))


def otp_expiry(now: datetime | None = None) -> datetime:
    """Expiry timestamp for an OTP issued at `now` (defaults to current UTC time)."""
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
