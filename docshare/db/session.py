"""
Database Session Management
Engine and session handling for the relational store
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from docshare.core.config import Settings
from docshare.core.logging import get_logger
from docshare.db.base import Base

logger = get_logger(__name__)


class Database:
    """Owns one async engine and its session factory"""

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        self.url = url
        self.engine = create_async_engine(url, echo=echo, pool_pre_ping=True, **engine_kwargs)
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        url = settings.SQLALCHEMY_URL
        engine_kwargs: Dict[str, Any]
        if url.startswith("sqlite"):
            # One shared connection so in-memory databases survive across sessions
            engine_kwargs = {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        else:
            engine_kwargs = {"pool_size": 10, "max_overflow": 20}

        logger.info(f"Configuring database engine for {url.split('://')[0]}")
        return cls(url, echo=settings.DEBUG, **engine_kwargs)

    async def create_all(self) -> None:
        """Create tables (use migrations for production)"""
        # Register every model with Base before DDL
        from docshare.db import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def dispose(self) -> None:
        """Close database connections"""
        await self.engine.dispose()
        logger.info("Database connection closed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and rolls back on error"""
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        async with self.session_maker() as session:
            await session.execute(text("SELECT 1"))
        return True
