# dinkassa_sync/database.py

# type: ignore[misc]
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy.orm import declarative_base
from dinkassa_sync.core.config import get_settings
import os

Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def normalize_database_url(database_url: str) -> str:
    # Convert postgresql:// to postgresql+asyncpg:// for async support
    if database_url.startswith('postgresql://'):
        database_url = database_url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return database_url


def get_engine() -> AsyncEngine:
    """Create the engine on first use so importing the worker needs no database."""
    global _engine
    if _engine is None:
        settings = get_settings()
        # Use environment variable directly if settings is empty
        database_url = settings.DATABASE_URL or os.environ.get('DATABASE_URL', '')
        if not database_url:
            raise ValueError("DATABASE_URL is not set in environment variables")

        _engine = create_async_engine(
            normalize_database_url(database_url),
            echo=False,
            future=True,
            pool_size=10,
            max_overflow=20,
            pool_timeout=30,
            pool_recycle=1800
        )
    return _engine


def async_session() -> AsyncSession:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False
        )
    return _session_factory()


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
