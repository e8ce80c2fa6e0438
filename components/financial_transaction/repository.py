"""Repository for ledger entry operations."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from components.financial_transaction.models import (
    ACCRUAL_TYPES,
    FinancialTransaction,
    FinancialTransactionType,
)
from components.loan.interest import to_money


class FinancialTransactionRepository:
    """
    Repository for ledger entries.

    Entries are append-only, so there is no update or delete here.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def add(self, entry: FinancialTransaction) -> FinancialTransaction:
        """Stage a new ledger entry and assign its ID. The caller commits."""
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_id(self, financial_transaction_id: int) -> Optional[FinancialTransaction]:
        result = await self.session.execute(
            select(FinancialTransaction).where(FinancialTransaction.id == financial_transaction_id)
        )
        return result.scalar_one_or_none()

    async def get_all(self) -> List[FinancialTransaction]:
        result = await self.session.execute(
            select(FinancialTransaction).order_by(
                FinancialTransaction.transaction_date.desc(), FinancialTransaction.id.desc()
            )
        )
        return list(result.scalars().all())

    async def get_by_loan_account_id(self, loan_account_id: int) -> List[FinancialTransaction]:
        """Get a loan's ledger entries, newest first."""
        result = await self.session.execute(
            select(FinancialTransaction)
            .where(FinancialTransaction.linked_loan_account_id == loan_account_id)
            .order_by(FinancialTransaction.transaction_date.desc(), FinancialTransaction.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_party_id(self, party_id: int) -> List[FinancialTransaction]:
        result = await self.session.execute(
            select(FinancialTransaction)
            .where(FinancialTransaction.party_id == party_id)
            .order_by(FinancialTransaction.transaction_date.desc(), FinancialTransaction.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_type(self, transaction_type: FinancialTransactionType) -> List[FinancialTransaction]:
        result = await self.session.execute(
            select(FinancialTransaction)
            .where(FinancialTransaction.transaction_type == transaction_type)
            .order_by(FinancialTransaction.transaction_date.desc(), FinancialTransaction.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_date_range(self, start_date: datetime, end_date: datetime) -> List[FinancialTransaction]:
        """Get entries dated within [start_date, end_date]."""
        result = await self.session.execute(
            select(FinancialTransaction)
            .where(
                FinancialTransaction.transaction_date >= start_date,
                FinancialTransaction.transaction_date <= end_date,
            )
            .order_by(FinancialTransaction.transaction_date.desc(), FinancialTransaction.id.desc())
        )
        return list(result.scalars().all())

    async def get_latest_accrual(self, loan_account_id: int) -> Optional[FinancialTransaction]:
        """Get the most recent interest accrual posted against a loan."""
        result = await self.session.execute(
            select(FinancialTransaction)
            .where(
                FinancialTransaction.linked_loan_account_id == loan_account_id,
                FinancialTransaction.transaction_type.in_(ACCRUAL_TYPES),
            )
            .order_by(FinancialTransaction.transaction_date.desc(), FinancialTransaction.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_total_amount_by_type(self, transaction_type: FinancialTransactionType) -> Decimal:
        result = await self.session.execute(
            select(func.sum(FinancialTransaction.amount)).where(
                FinancialTransaction.transaction_type == transaction_type
            )
        )
        return to_money(result.scalar() or 0)

    async def get_total_amount_by_party_and_type(
        self, party_id: int, transaction_type: FinancialTransactionType
    ) -> Decimal:
        result = await self.session.execute(
            select(func.sum(FinancialTransaction.amount)).where(
                FinancialTransaction.party_id == party_id,
                FinancialTransaction.transaction_type == transaction_type,
            )
        )
        return to_money(result.scalar() or 0)
