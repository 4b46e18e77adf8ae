"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support:

  - engine: The async database engine
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - session_dependency(): builds the per-request session dependency
  - get_db: that dependency for AsyncSessionLocal

Session lifecycle:
  Each API request gets its own session via get_db(). A balance write and
  the ledger row that explains it are flushed in that same session, so they
  commit together at the end of the request or not at all.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from nucash.config import settings
from nucash.exceptions import NUCashError, PersistenceInconsistencyError


# echo=True in debug mode logs all SQL statements.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False prevents lazy-load errors after commit: accessing
# attributes on a committed object would otherwise trigger a synchronous
# DB call, which fails in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def session_dependency(session_factory: async_sessionmaker):
    """
    Build a FastAPI dependency that provides one session per request from
    `session_factory`.

    The session is committed on success and rolled back on any unexpected
    exception, then closed when the request completes. Tests build their
    own dependency from a sessionmaker bound to the test engine.
    """

    async def get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except PersistenceInconsistencyError:
                # The balance UPDATE went out but its ledger row didn't; drop both.
                await session.rollback()
                raise
            except NUCashError:
                # Domain errors are raised before the failing operation writes
                # anything; committing keeps earlier work in the same request
                # (e.g. completed batch items).
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    return get_session


# Usage in a route:
#     @router.post("/pay")
#     async def pay(db: AsyncSession = Depends(get_db)):
#         ...
get_db = session_dependency(AsyncSessionLocal)
