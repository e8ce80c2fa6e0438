"""
Ledger store wiring.

Owns the async engine and the session factory. Every engine operation runs in
one session from here and commits it once.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from components.core import config

settings = config.get_settings()
Base = declarative_base()


class DatabaseManager:
    def __init__(self, engine: Optional[AsyncEngine] = None) -> None:
        """Initialize DatabaseManager with optional engine for testing."""
        self.engine = engine or self._create_engine()
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def _create_engine(self) -> AsyncEngine:
        if settings.is_sqlite:
            # SQLite serializes writers itself, pool sizing does not apply
            return create_async_engine(settings.async_db_url, echo=settings.DB_ECHO)
        return create_async_engine(
            settings.async_db_url,
            echo=settings.DB_ECHO,
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )

    @asynccontextmanager
    async def get_db(self) -> AsyncIterator[AsyncSession]:
        """Session scoped to the block; uncommitted work is rolled back on close."""
        async with self.session_factory() as session:
            yield session

    async def create_tables(self) -> None:
        """Create the parties, loan_accounts and financial_transactions tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
