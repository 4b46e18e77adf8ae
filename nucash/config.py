"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Nothing here is a secret except the SMTP credentials, which have
no defaults and are only needed when EMAIL_ENABLED is true.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Money settings are integer centavos, like every amount in the system
(PHP 15.00 = 1500).

Usage:
    from nucash.config import settings
    print(settings.DEFAULT_FARE_CENTS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the NUCash API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "NUCash API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/nucash.db"

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    # --- Fares and balance floor ---
    # Last-resort fare when neither the request, the route nor the system
    # settings row supplies one. Also the offline sync fallback.
    DEFAULT_FARE_CENTS: int = 1500
    # Most negative balance a live fare payment may leave behind, used when
    # the system settings row has no value.
    DEFAULT_NEGATIVE_LIMIT_CENTS: int = -1400

    # --- Treasury ---
    MIN_CASH_IN_CENTS: int = 1000
    MAX_CASH_IN_CENTS: int = 1_000_000

    # --- Ledger policy switches ---
    # Apply the live payment rules (active flag, negative floor) to offline
    # sync entries. Off reproduces the lenient offline behaviour.
    SYNC_ENFORCE_LIVE_RULES: bool = False
    # Condition every balance write on the account version read beforehand.
    # Off is last-writer-wins.
    OPTIMISTIC_BALANCE_WRITES: bool = False

    # --- Activation ---
    OTP_EXPIRE_MINUTES: int = 10

    # --- E-mail ---
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "NUCash <no-reply@nucash.local>"
    SHUTTLE_MERCHANT_NAME: str = "NU Shuttle Service"


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
