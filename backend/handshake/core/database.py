"""
PostgreSQL database configuration using SQLAlchemy
"""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from handshake.core.config import settings

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()

engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker] = None


def create_engine_for_url(database_url: str) -> AsyncEngine:
    """
    Create an async engine. Pool and timeout settings only apply to PostgreSQL;
    other drivers (sqlite in tests) get their defaults.
    """
    if not database_url.startswith("postgresql"):
        return create_async_engine(database_url, echo=False, future=True)

    # connect_args for asyncpg: command_timeout, server_settings
    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,  # Test connections before using them
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=3600,
        connect_args={
            "command_timeout": 10,
            "server_settings": {
                "application_name": "github_app_handshake",
                "statement_timeout": "10000",
            },
        },
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Create an async session factory bound to ``bind``"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker:
    """
    Return the process-wide session factory, creating the engine on first use.
    """
    global engine, AsyncSessionLocal

    if AsyncSessionLocal is None:
        if not settings.DATABASE_URL:
            raise ValueError("Database configuration is missing. Please set DATABASE_URL environment variable.")
        engine = create_engine_for_url(settings.DATABASE_URL)
        AsyncSessionLocal = create_session_factory(engine)
    return AsyncSessionLocal


async def init_db():
    """
    Initialize database - create all tables
    """
    get_session_factory()
    try:
        logger.info("Initializing database connection...")
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            logger.info("Database connection successful")
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables initialized successfully")
    except TimeoutError as e:
        logger.error(f"Database connection timeout: {e}")
        logger.error(f"Database is accessible at: {settings.DATABASE_URL.split('@')[-1] if '@' in settings.DATABASE_URL else 'unknown'}")
        raise
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        logger.error(f"Database URL: {settings.DATABASE_URL.split('@')[0]}@***")  # Hide password
        raise


async def close_db():
    """
    Close database connections
    """
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None
