"""Financial transaction (ledger entry) model for the database."""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Numeric, event

from components.core.database import Base
from components.core.exceptions import LedgerImmutableError


class FinancialTransactionType(str, enum.Enum):
    LOAN_GIVEN = "LoanGiven"  # Money lent to a party
    LOAN_TAKEN = "LoanTaken"  # Money borrowed from a party
    LOAN_REPAYMENT = "LoanRepayment"  # Repayment received for a loan given
    LOAN_PAYMENT = "LoanPayment"  # Payment made for a loan taken
    INTEREST_RECEIVED = "InterestReceived"
    INTEREST_PAID = "InterestPaid"


class PaymentMode(str, enum.Enum):
    CASH = "Cash"
    BANK = "Bank"
    LOAN = "Loan"


DISBURSEMENT_TYPES = (FinancialTransactionType.LOAN_GIVEN, FinancialTransactionType.LOAN_TAKEN)
PAYMENT_TYPES = (FinancialTransactionType.LOAN_REPAYMENT, FinancialTransactionType.LOAN_PAYMENT)
ACCRUAL_TYPES = (FinancialTransactionType.INTEREST_RECEIVED, FinancialTransactionType.INTEREST_PAID)

DEBIT_TYPES = (
    FinancialTransactionType.LOAN_GIVEN,
    FinancialTransactionType.LOAN_PAYMENT,
    FinancialTransactionType.INTEREST_PAID,
)


class FinancialTransaction(Base):
    """Immutable ledger posting linked to a loan account."""
    __tablename__ = "financial_transactions"

    id = Column(Integer, primary_key=True, index=True)
    party_id = Column(Integer, nullable=True, index=True)
    party_name = Column(String(200), nullable=False, default="")  # Snapshot at posting time
    transaction_type = Column(Enum(FinancialTransactionType), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)
    payment_mode = Column(Enum(PaymentMode), nullable=False, default=PaymentMode.CASH)
    interest_rate = Column(Numeric(5, 2), nullable=True)
    interest_amount = Column(Numeric(18, 2), nullable=True)
    transaction_date = Column(DateTime, nullable=False, index=True)
    due_date = Column(DateTime, nullable=True)
    linked_loan_account_id = Column(Integer, ForeignKey("loan_accounts.id"), nullable=True, index=True)
    entered_by = Column(Integer, nullable=False)
    notes = Column(String(500), nullable=False, default="")
    created_date = Column(DateTime, nullable=False, default=datetime.now)
    modified_date = Column(DateTime, nullable=True)

    @property
    def debit_credit(self) -> str:
        return "Debit" if self.transaction_type in DEBIT_TYPES else "Credit"


@event.listens_for(FinancialTransaction, "before_update")
def _reject_update(mapper, connection, target):
    raise LedgerImmutableError(
        f"Ledger entry {target.id} is immutable, post an offsetting entry instead",
        details={"financial_transaction_id": target.id},
    )


@event.listens_for(FinancialTransaction, "before_delete")
def _reject_delete(mapper, connection, target):
    raise LedgerImmutableError(
        f"Ledger entry {target.id} cannot be deleted",
        details={"financial_transaction_id": target.id},
    )
