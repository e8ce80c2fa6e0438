"""Pydantic schemas for ledger entries."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from components.financial_transaction.models import FinancialTransactionType, PaymentMode


class FinancialTransaction(BaseModel):
    """Schema for ledger entry response."""
    id: int
    party_id: Optional[int] = None
    party_name: str
    transaction_type: FinancialTransactionType
    amount: Decimal
    payment_mode: PaymentMode
    interest_rate: Optional[Decimal] = None
    interest_amount: Optional[Decimal] = None
    transaction_date: datetime
    due_date: Optional[datetime] = None
    linked_loan_account_id: Optional[int] = None
    entered_by: int
    notes: str
    created_date: datetime
    debit_credit: str

    class Config:
        from_attributes = True
