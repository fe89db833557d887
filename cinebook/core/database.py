"""
Database engine, session factory and transaction helper
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from cinebook.config import settings

logger = logging.getLogger(__name__)

# Execution option read by the SQLite ``begin`` hook
SQLITE_BEGIN_MODE = "sqlite_begin_mode"


def configure_sqlite(engine: AsyncEngine) -> AsyncEngine:
    """
    Take over transaction control from the sqlite driver.

    The driver defers BEGIN until the first write, which leaves the reads of a
    booking transaction outside it. Here every transaction opens with an
    explicit BEGIN; transactions started by ``DatabaseManager`` use
    ``BEGIN IMMEDIATE`` so writers on the same file run one at a time.
    WAL keeps plain readers from blocking them.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_MODE, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")

    return engine


def build_engine(url: str) -> AsyncEngine:
    """PostgreSQL gets a connection pool; SQLite opens a connection per checkout."""
    if url.startswith("sqlite"):
        return configure_sqlite(create_async_engine(
            url,
            echo=settings.DB_ECHO,
            poolclass=NullPool,
            connect_args={"timeout": settings.DB_POOL_TIMEOUT},
        ))
    if settings.is_testing:
        return create_async_engine(url, echo=settings.DB_ECHO, poolclass=NullPool)
    return create_async_engine(
        url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        poolclass=AsyncAdaptedQueuePool,
    )


engine: AsyncEngine = build_engine(settings.DATABASE_URL)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def init_db():
    """Create missing tables"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db():
    await engine.dispose()
    logger.info("Database connections closed")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a request-scoped session.
    Services open their own transaction on it.
    """
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


class DatabaseManager:
    """
    Transaction boundary used by the booking services
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def transaction(self, session: AsyncSession) -> AsyncIterator[AsyncSession]:
        """
        Run the block inside a single transaction on ``session``.

        Commits on a clean exit and rolls back on any exception. A session that
        already autobegan (e.g. after a read) is rolled back first so that every
        booking transaction starts from a fresh snapshot. On SQLite the
        transaction holds the write lock from its first statement, so its
        availability reads and writes cannot interleave with another writer.
        """
        if session.in_transaction():
            await session.rollback()
        try:
            async with session.begin():
                # Ignored by every backend except the SQLite begin hook
                await session.connection(execution_options={SQLITE_BEGIN_MODE: "IMMEDIATE"})
                yield session
        except Exception as e:
            self.logger.info(f"Transaction rolled back: {type(e).__name__}: {e}")
            raise


db_manager = DatabaseManager()
