"""Store access helpers shared by the services."""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.errors import StoreError

logger = logging.getLogger("mailportal.store")


def now_sec() -> int:
    """Current time in epoch seconds, the unit every expiry column uses."""
    return int(time.time())


@asynccontextmanager
async def store_session(
    session_factory: async_sessionmaker[AsyncSession], operation: str
) -> AsyncIterator[AsyncSession]:
    """Open a session; any SQLAlchemyError escaping the block becomes StoreError."""
    try:
        async with session_factory() as session:
            yield session
    except SQLAlchemyError as e:
        logger.exception("Store failure during %s", operation)
        raise StoreError() from e
