"""Async SQLAlchemy engine and session factory.

One Database is created per process by the application factory and kept on
``app.state``. Everything that talks to the store receives it explicitly:

    db = Database(settings)
    store = IdentityStore(db.session_factory, timeout=5.0)
"""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fileshare.config import Settings
from fileshare.models import Base


class Database:
    """Owns the pooled engine for the lifetime of the process."""

    def __init__(self, settings: Settings):
        engine_kwargs = {"echo": False, "pool_pre_ping": True}
        if not settings.DATABASE_URL.startswith("sqlite"):
            engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
            engine_kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW

        self.engine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create tables that don't exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()
