"""
Async database manager for SQLAlchemy
- Engine built from the injected Settings (PostgreSQL via asyncpg, SQLite via aiosqlite)
- Table initialization from the registered models
- Request-scoped sessions with commit/rollback handling
"""
import logging
from importlib import import_module
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine
)

from app.core.config import Settings
from app.models.base import Base

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async database sessions and schema setup."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def init(self):
        """Initialize the engine and session factory."""
        db_url = self.settings.DATABASE_URL
        engine_kwargs = {"pool_pre_ping": True, "echo": self.settings.DB_ECHO}
        if not db_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=15,
                max_overflow=5,
                pool_timeout=30,
                pool_recycle=300,
            )

        self.engine = create_async_engine(db_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False
        )

    async def create_all(self):
        """Create tables for every registered model."""
        if not self.engine:
            raise RuntimeError("DatabaseSessionManager not initialized")
        for model in self.settings.DB_MODELS:
            import_module(model)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"📝 Tables ready: {list(Base.metadata.tables.keys())}")

    async def ping(self) -> bool:
        async with self.get_session() as session:
            await session.execute(text("SELECT 1"))
        return True

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for safe session handling"""
        if not self.session_factory:
            raise RuntimeError("DatabaseSessionManager not initialized")
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        """Cleanup connection pool"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


async def aget_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions
    Usage:
    @router.get("/")
    async def endpoint(db: AsyncSession = Depends(aget_db)):
        ...
    """
    session_manager: DatabaseSessionManager = request.app.state.db
    async with session_manager.get_session() as session:
        yield session
