"""Pydantic schemas for loan account data validation."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from components.financial_transaction.models import PaymentMode
from components.financial_transaction.schemas import FinancialTransaction
from components.loan.models import LoanStatus, LoanType


class LoanCreate(BaseModel):
    """Schema for loan creation. Amount and rate rules are enforced by the engine."""
    party_id: int
    loan_type: LoanType
    original_amount: Decimal
    interest_rate: Decimal = Decimal("0")
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    created_by: int
    payment_mode: PaymentMode = PaymentMode.CASH
    notes: str = Field("", max_length=500)


class PaymentCreate(BaseModel):
    """Schema for recording a payment against a loan."""
    amount: Decimal
    payment_mode: PaymentMode = PaymentMode.CASH
    entered_by: int
    notes: str = Field("", max_length=500)
    accrue_interest: bool = False


class LoanAccount(BaseModel):
    """Schema for loan account response."""
    id: int
    party_id: int
    loan_type: LoanType
    original_amount: Decimal
    interest_rate: Decimal
    start_date: datetime
    due_date: Optional[datetime] = None
    outstanding_principal: Decimal
    outstanding_interest: Decimal
    total_outstanding: Decimal
    status: LoanStatus
    created_by: int
    notes: str
    created_date: datetime
    modified_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoanWithTransactions(BaseModel):
    """Schema for a loan together with its ledger, newest entry first."""
    loan: LoanAccount
    transactions: List[FinancialTransaction]


class InterestAccrual(BaseModel):
    """Schema for the result of an interest accrual request."""
    posted: bool
    transaction: Optional[FinancialTransaction] = None
    loan: LoanAccount


class OutstandingTotal(BaseModel):
    """Schema for the outstanding sum across open loans of one type."""
    loan_type: LoanType
    total_outstanding: Decimal


class FinancialSummary(BaseModel):
    """Schema for the dashboard summary."""
    total_loans_given: Decimal
    total_loans_taken: Decimal
    total_interest_receivable: Decimal
    total_interest_payable: Decimal


class LedgerBalance(BaseModel):
    """Schema comparing the ledger-derived balance with the stored outstanding total."""
    loan_account_id: int
    ledger_balance: Decimal
    total_outstanding: Decimal
    balanced: bool
