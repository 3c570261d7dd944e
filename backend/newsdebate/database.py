"""
Database connection using SQLAlchemy + asyncpg.

Summaries and debates live in four plain relational tables (see
newsdebate.models.records). Nothing here is Postgres-specific, so the
same models run against SQLite in the test suite.

Sessions are short-lived: the debate cache and the summarizer open one
session per operation with `async with async_session() as session`, run a
single transaction, and hand the connection back to the pool. A streaming
response can outlive the request scope, so we don't tie sessions to it.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from newsdebate.config import get_settings

# Load configuration (database URL) from environment variables
settings = get_settings()

# Connection pool
# - Reuses connections instead of opening a new one per query
# - echo=True logs all SQL statements (useful for debugging, off by default)
engine = create_async_engine(settings.database_url, echo=settings.database_echo)

# Factory that creates database sessions
#
# expire_on_commit=False keeps objects usable after commit (needed for async)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency that returns the session factory (overridden in tests)."""
    return async_session
