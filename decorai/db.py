# db.py
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from decorai.settings import settings

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Rewrites hosted PostgreSQL URLs to use the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)

if DATABASE_URL.startswith("postgresql+asyncpg://"):
    logger.info("✅ Connecting to PostgreSQL database.")
    # Pool settings only apply to server databases; SQLite uses a static pool.
    engine_kwargs = dict(pool_size=10, max_overflow=5, pool_timeout=30, pool_recycle=1800)
else:
    logger.info("✅ Using local SQLite database for development.")
    engine_kwargs = {}


# --- SQLAlchemy Engine & Session ---

engine = create_async_engine(DATABASE_URL, echo=False, **engine_kwargs)

# `expire_on_commit=False` keeps attributes loaded after commit so rows can be
# serialized once the route returns.
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Base class for declarative models. All models in `models.py` inherit from this.
Base = declarative_base()


# --- FastAPI Dependency ---

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session to each request.

    Rolls back on an unhandled error and always closes the session.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables() -> None:
    """Creates any missing tables. Called from the app startup hook."""
    # Import models so they are registered on Base.metadata.
    from decorai import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified/created.")
