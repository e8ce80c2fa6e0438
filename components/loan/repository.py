"""Repository for loan account operations."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from components.loan.interest import to_money
from components.loan.models import LoanAccount, LoanStatus, LoanType, OPEN_STATUSES


class LoanAccountRepository:
    """Repository for loan account operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def add(self, loan: LoanAccount) -> LoanAccount:
        """Stage a new loan account and assign its ID. The caller commits."""
        self.session.add(loan)
        await self.session.flush()
        return loan

    async def get_by_id(self, loan_account_id: int) -> Optional[LoanAccount]:
        """Get loan account by ID."""
        result = await self.session.execute(
            select(LoanAccount).where(LoanAccount.id == loan_account_id)
        )
        return result.scalar_one_or_none()

    async def get_all(self) -> List[LoanAccount]:
        result = await self.session.execute(
            select(LoanAccount).order_by(LoanAccount.created_date.desc(), LoanAccount.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_party_id(self, party_id: int) -> List[LoanAccount]:
        """Get all loans held with a party, newest first."""
        result = await self.session.execute(
            select(LoanAccount)
            .where(LoanAccount.party_id == party_id)
            .order_by(LoanAccount.created_date.desc(), LoanAccount.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_loan_type(self, loan_type: LoanType) -> List[LoanAccount]:
        result = await self.session.execute(
            select(LoanAccount)
            .where(LoanAccount.loan_type == loan_type)
            .order_by(LoanAccount.created_date.desc(), LoanAccount.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_status(self, status: LoanStatus) -> List[LoanAccount]:
        result = await self.session.execute(
            select(LoanAccount)
            .where(LoanAccount.status == status)
            .order_by(LoanAccount.created_date.desc(), LoanAccount.id.desc())
        )
        return list(result.scalars().all())

    async def get_active_loans_by_party(self, party_id: int) -> List[LoanAccount]:
        """Get a party's loans that still carry a balance."""
        result = await self.session.execute(
            select(LoanAccount)
            .where(
                LoanAccount.party_id == party_id,
                LoanAccount.status.in_(OPEN_STATUSES),
            )
            .order_by(LoanAccount.created_date.desc(), LoanAccount.id.desc())
        )
        return list(result.scalars().all())

    async def get_overdue_loans(self, as_of: datetime) -> List[LoanAccount]:
        """
        Get open loans whose due date has passed.

        Uses the due date rather than the stored status, so loans that have
        not been touched since their due date are included too.
        """
        result = await self.session.execute(
            select(LoanAccount)
            .where(
                LoanAccount.status.in_(OPEN_STATUSES),
                LoanAccount.due_date.is_not(None),
                LoanAccount.due_date < as_of,
            )
            .order_by(LoanAccount.due_date)
        )
        return list(result.scalars().all())

    async def get_total_outstanding_by_type(self, loan_type: LoanType) -> Decimal:
        """Sum of total_outstanding across open loans of a type."""
        result = await self.session.execute(
            select(func.sum(LoanAccount.total_outstanding)).where(
                LoanAccount.loan_type == loan_type,
                LoanAccount.status.in_(OPEN_STATUSES),
            )
        )
        return to_money(result.scalar() or 0)

    async def get_total_interest_by_type(self, loan_type: LoanType) -> Decimal:
        """Sum of unpaid accrued interest across open loans of a type."""
        result = await self.session.execute(
            select(func.sum(LoanAccount.outstanding_interest)).where(
                LoanAccount.loan_type == loan_type,
                LoanAccount.status.in_(OPEN_STATUSES),
            )
        )
        return to_money(result.scalar() or 0)
