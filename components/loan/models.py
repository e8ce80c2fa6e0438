"""Loan account model for the database."""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Enum, Numeric

from components.core.database import Base


class LoanType(str, enum.Enum):
    GIVEN = "Given"  # Money lent out
    TAKEN = "Taken"  # Money borrowed


class LoanStatus(str, enum.Enum):
    ACTIVE = "Active"
    PARTIALLY_PAID = "PartiallyPaid"
    CLOSED = "Closed"
    OVERDUE = "Overdue"


OPEN_STATUSES = (LoanStatus.ACTIVE, LoanStatus.PARTIALLY_PAID, LoanStatus.OVERDUE)


class LoanAccount(Base):
    """One lending or borrowing relationship with a party."""
    __tablename__ = "loan_accounts"

    id = Column(Integer, primary_key=True, index=True)
    party_id = Column(Integer, nullable=False, index=True)
    loan_type = Column(Enum(LoanType), nullable=False, index=True)
    original_amount = Column(Numeric(18, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)  # Percent per annum
    start_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=True)

    # Written only by the engine; total is always principal + interest
    outstanding_principal = Column(Numeric(18, 2), nullable=False)
    outstanding_interest = Column(Numeric(18, 2), nullable=False, default=0)
    total_outstanding = Column(Numeric(18, 2), nullable=False)
    status = Column(Enum(LoanStatus), nullable=False, default=LoanStatus.ACTIVE, index=True)

    created_by = Column(Integer, nullable=False)
    notes = Column(String(500), nullable=False, default="")
    created_date = Column(DateTime, nullable=False, default=datetime.now)
    modified_date = Column(DateTime, nullable=True)

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}
