"""Shared endpoint dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.init_db import get_db
from components.loan.service import LoanAccountingEngine


async def get_engine(db: AsyncSession = Depends(get_db)) -> LoanAccountingEngine:
    """Loan accounting engine bound to the request's database session."""
    return LoanAccountingEngine(db)
