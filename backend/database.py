"""Async SQLAlchemy engine, session factory and table bootstrap."""

import logging

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

_is_sqlite = settings.database_url.startswith("sqlite")

# SQLite connections are cheap and must not be shared across event loops
engine = create_async_engine(
    settings.database_url,
    **({"poolclass": NullPool} if _is_sqlite else {"pool_pre_ping": True}),
)

if _is_sqlite:
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models() -> None:
    import models  # noqa: F401  registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def check_connection() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_session():
    async with SessionLocal() as session:
        yield session
