"""Async SQLAlchemy setup for the identity store (user accounts)."""

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from tokengate.core.config import Settings, settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(config: Settings, *, pooled: bool = True) -> AsyncEngine:
    """Engine for ``config.database_url``.

    Unpooled engines are for one-shot work such as migrations and the
    provisioning script.
    """
    if not pooled:
        return create_async_engine(config.database_url, poolclass=NullPool)
    return create_async_engine(
        config.database_url,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout,
        pool_recycle=config.db_pool_recycle,
        pool_pre_ping=True,
    )


# Creating the engine does not connect; the first identity lookup does
engine = build_engine(settings)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def check_db_connection() -> bool:
    """Whether the identity store answers a trivial query."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Identity store check failed: {e}")
        return False
