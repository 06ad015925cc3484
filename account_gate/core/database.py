import logging
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from account_gate.models import Base
from .config import settings


def get_database_url() -> str:
    """
    Get the async database URL.

    - PostgreSQL URLs are rewritten to use the asyncpg driver
    - SQLite URLs are rewritten to use the aiosqlite driver
    """
    url = settings.DATABASE_URL
    if url.startswith("postgresql://") or url.startswith("postgres://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://").replace(
            "postgres://", "postgresql+asyncpg://"
        )
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://")
    return url


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine with driver-specific settings."""
    if database_url.startswith("sqlite"):
        engine_kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            # Single shared connection so every session sees the same database
            engine_kwargs["poolclass"] = StaticPool
        return create_async_engine(
            database_url,
            echo=False,
            future=True,
            **engine_kwargs,
        )

    return create_async_engine(
        database_url,
        echo=False,  # Disable SQLAlchemy query logging (use Python logging config instead)
        future=True,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=3600 if not settings.is_local else -1,
        pool_size=10 if not settings.is_local else 5,
        max_overflow=20 if not settings.is_local else 10,
        pool_timeout=30,  # Wait up to 30 seconds for connection from pool
        connect_args={
            "command_timeout": 30,  # Command timeout in seconds
            "timeout": 10,  # Connection timeout in seconds
            "server_settings": {
                "application_name": "account-gate-api",
            },
        },
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine):
    """Create all database tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database(engine: AsyncEngine):
    """Initialize database with tables"""
    logger = logging.getLogger(__name__)

    try:
        await create_tables(engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}", exc_info=True)
        raise RuntimeError(f"Failed to initialize database: {e}") from e
