"""Derivation of a loan account's cached balance and status fields."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from components.loan.interest import ZERO, to_money
from components.loan.models import LoanAccount, LoanStatus

# A balance below one cent counts as settled
CLOSE_TOLERANCE = Decimal("0.01")


def derive_status(
    original_amount: Decimal,
    outstanding_principal: Decimal,
    outstanding_interest: Decimal,
    due_date: Optional[datetime],
    now: datetime,
) -> LoanStatus:
    """
    Status as a pure function of the outstanding balances and the due date.

    Closed wins over everything, then Overdue, then PartiallyPaid once any
    principal has been repaid. Principal never grows, so interest accrued
    after a payment cannot send the loan back to Active.
    """
    total = outstanding_principal + outstanding_interest
    if total < CLOSE_TOLERANCE:
        return LoanStatus.CLOSED
    if due_date is not None and due_date < now:
        return LoanStatus.OVERDUE
    if outstanding_principal < original_amount:
        return LoanStatus.PARTIALLY_PAID
    return LoanStatus.ACTIVE


def refresh_derived_fields(loan: LoanAccount, now: datetime) -> None:
    """Recompute total_outstanding and status on the loan in place."""
    principal = to_money(loan.outstanding_principal)
    interest = to_money(loan.outstanding_interest)
    if principal + interest < CLOSE_TOLERANCE:
        principal = interest = ZERO

    loan.outstanding_principal = principal
    loan.outstanding_interest = interest
    loan.total_outstanding = principal + interest
    loan.status = derive_status(
        to_money(loan.original_amount), principal, interest, loan.due_date, now
    )
