"""
Async database setup using SQLModel with aiosqlite.
"""

from sqlmodel import SQLModel
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator
from app.models import *

from app.core.config import get_settings
from app.core.errors import StorageError

settings = get_settings()


def enable_sqlite_transactions(engine: AsyncEngine) -> AsyncEngine:
    """
    Make SQLite transactions cover reads as well as writes.

    The sqlite3 driver only emits BEGIN ahead of a write, so a SELECT issued
    inside session.begin() would otherwise run outside the transaction and
    a concurrent commit could land between a read and the write based on it.
    Driver transaction handling is switched off and BEGIN is emitted
    whenever SQLAlchemy starts a transaction.
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


# Create async engine
engine = enable_sqlite_transactions(create_async_engine(
    settings.database_url,
    echo=settings.debug,
))


AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession
)


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one storage transaction.

    Commits on success, rolls back on any exception. Driver and commit
    failures surface as StorageError; domain errors pass through unchanged.

    A read-only transaction left open on the session by earlier queries is
    ended first. Pending unflushed objects are never discarded: the caller
    must either flush them inside the block or not have any.

    Raises:
        RuntimeError: the session holds pending changes made outside a block
    """
    if session.new or session.dirty or session.deleted:
        raise RuntimeError("Session has pending changes made outside a transaction block")
    if session.in_transaction():
        await session.rollback()
    try:
        async with session.begin():
            yield session
    except SQLAlchemyError as e:
        raise StorageError(f"Transaction aborted: {e.__class__.__name__}") from e
