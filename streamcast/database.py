import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy import event

from streamcast.config import settings
from streamcast.models import Base

logger = logging.getLogger(__name__)

# Engine and session factory - initialized in init_db() during startup
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory from engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


def create_engine(database_path: str) -> AsyncEngine:
    """Create the async SQLite engine; ``:memory:`` shares one connection"""
    if database_path == ":memory:":
        engine = create_async_engine(
            "sqlite+aiosqlite://",
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{database_path}",
            echo=False,
            pool_pre_ping=True,
            connect_args={"timeout": 30, "check_same_thread": False},
        )

    def configure_sqlite(dbapi_conn, _):
        """Configure SQLite connection parameters"""
        cursor = dbapi_conn.cursor()
        if database_path != ":memory:":
            cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    event.listen(engine.sync_engine, "connect", configure_sqlite)
    return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory (initialized in init_db)"""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() during startup.")
    return _session_factory


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(database_path: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Initialize database schema and engine"""
    global _engine, _session_factory

    path = database_path or settings.database_path
    logger.info(f"Initializing database at {path}")

    _engine = create_engine(path)
    await create_schema(_engine)
    _session_factory = create_session_factory(_engine)

    logger.info("Database initialized successfully")
    return _session_factory


async def close_db() -> None:
    """Close database connections on shutdown"""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Provide a read session; rolls back on error.

    Args:
        session_factory: Factory to use; defaults to the one created by init_db()
    """
    factory = session_factory or get_session_factory()

    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
