"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager - logging setup, DB table creation, engine disposal
  2. CORS middleware - allows the web dashboards to call the API
  3. Exception handlers - maps domain errors to HTTP responses
  4. Router registration - mounts all API endpoint groups

Running locally:
    uvicorn nucash.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import nucash.models  # noqa: F401  (registers all tables on Base.metadata)
from nucash.config import settings
from nucash.database import engine, Base
from nucash.exceptions import register_exception_handlers
from nucash.logging_config import configure_logging
from nucash.routers import accounts, activation, shuttle, sysad, treasury

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Configures logging and creates all database tables if they don't exist.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    configure_logging()
    if settings.DATABASE_URL.startswith("sqlite+aiosqlite:///./"):
        db_path = Path(settings.DATABASE_URL.removeprefix("sqlite+aiosqlite:///"))
        db_path.parent.mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    # --- Shutdown ---
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Campus RFID shuttle payments: fares, refunds, offline sync and cash-in",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(shuttle.router, prefix="/shuttle", tags=["Shuttle"])
app.include_router(treasury.router, prefix="/treasury", tags=["Treasury"])
app.include_router(activation.router, prefix="/activation", tags=["Activation"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(sysad.router, prefix="/sysad", tags=["System Administration"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe for deployments."""
    return {"status": "ok", "version": settings.APP_VERSION}
