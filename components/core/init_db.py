"""Database initialization and dependency injection."""

import logging
from typing import AsyncGenerator

import fastapi
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.database import DatabaseManager
# Import all models so their tables are registered on Base
import components.party.models
import components.loan.models
import components.financial_transaction.models

logger = logging.getLogger(__name__)

db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database sessions."""
    async with db_manager.get_db() as session:
        yield session


def init_db(app: fastapi.FastAPI) -> None:
    """Create missing ledger tables when the app starts."""

    @app.on_event("startup")
    async def create_tables() -> None:
        await db_manager.create_tables()
        logger.info("Ledger tables ready")
