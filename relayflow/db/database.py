"""Engine and session factory for conversation and execution-record tables.

The engine is created on first use so RELAYFLOW_DATABASE_URL can change
after import (``relayflow run --persist`` reads it at call time).
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from relayflow.config import config

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    global _engine, _session_factory
    if _engine is None:
        url = config.database_url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_async_engine(url, echo=config.debug, connect_args=connect_args)
        _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)
        # host part only; the URL may carry credentials
        logger.info(f"[DB] Engine ready on {url.rsplit('@', 1)[-1]}")
    return _engine


def async_session() -> AsyncSession:
    """New session on the shared engine. Use as ``async with async_session() as s``."""
    get_engine()
    return _session_factory()


async def init_db() -> None:
    """Create missing tables. Safe to call on every startup."""
    from relayflow.db.models import Base
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
