"""Database base and session setup."""
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

import config
from portal.models.capabilities import probe_schema

logger = logging.getLogger("mailportal.db")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


engine = create_async_engine(
    config.DATABASE_URL,
    echo=False,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# Column added after the first schema; older databases lack it.
_PASSWORD_ITERATIONS_MIGRATION = "ALTER TABLE users ADD COLUMN pass_iterations INTEGER"


async def _run_migrations(conn) -> None:
    """Add pass_iterations to users tables created before it existed."""
    if (await probe_schema(conn)).password_iterations:
        return
    try:
        await conn.execute(text(_PASSWORD_ITERATIONS_MIGRATION))
    except SQLAlchemyError:
        logger.warning("Could not add users.pass_iterations; the global default applies", exc_info=True)


async def init_db(bind=None):
    """Create all tables, run migrations and return the probed SchemaCapabilities."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await _run_migrations(conn)
        capabilities = await probe_schema(conn)
    logger.info("Schema capabilities: %s", capabilities)
    return capabilities
