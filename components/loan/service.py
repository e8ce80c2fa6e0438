"""
Loan accounting engine.

Creates loan accounts, posts ledger entries against them, accrues simple
interest and applies payments. Every mutating call stages the loan update and
its ledger entries in the engine's session and commits them together, so a
ledger entry is never visible without the matching outstanding balances.

Payments are allocated interest first, then principal. A payment larger than
the loan's total outstanding is rejected rather than capped.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import AsyncIterator, Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.exceptions import (
    ConcurrencyConflictError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
)
from components.financial_transaction.models import (
    ACCRUAL_TYPES,
    PAYMENT_TYPES,
    FinancialTransaction,
    FinancialTransactionType,
    PaymentMode,
)
from components.financial_transaction.repository import FinancialTransactionRepository
from components.financial_transaction import schemas as transaction_schemas
from components.loan import schemas
from components.loan.interest import ZERO, months_between, simple_interest, to_money, to_rate
from components.loan.models import LoanAccount, LoanStatus, LoanType
from components.loan.repository import LoanAccountRepository
from components.loan.status import CLOSE_TOLERANCE, refresh_derived_fields
from components.party.repository import PartyDirectory, PartyRepository

logger = logging.getLogger(__name__)

_DISBURSEMENT_TYPE = {
    LoanType.GIVEN: FinancialTransactionType.LOAN_GIVEN,
    LoanType.TAKEN: FinancialTransactionType.LOAN_TAKEN,
}
_PAYMENT_TYPE = {
    LoanType.GIVEN: FinancialTransactionType.LOAN_REPAYMENT,
    LoanType.TAKEN: FinancialTransactionType.LOAN_PAYMENT,
}
_ACCRUAL_TYPE = {
    LoanType.GIVEN: FinancialTransactionType.INTEREST_RECEIVED,
    LoanType.TAKEN: FinancialTransactionType.INTEREST_PAID,
}


def _decimal(value, field: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidArgumentError(f"{field} must be a number", details={field: str(value)})
    if not number.is_finite():
        raise InvalidArgumentError(f"{field} must be a finite number", details={field: str(value)})
    return number


def _positive_money(value, field: str) -> Decimal:
    amount = to_money(_decimal(value, field))
    if amount <= 0:
        raise InvalidArgumentError(f"{field} must be greater than zero", details={field: str(value)})
    return amount


def _user_id(value, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InvalidArgumentError(f"{field} must be a positive user ID", details={field: value})
    return value


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive local time, the form dates are stored and compared in."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class LoanAccountingEngine:
    """Orchestrates loan creation, payments, interest accrual and loan queries."""

    def __init__(
        self,
        session: AsyncSession,
        party_directory: Optional[PartyDirectory] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.loans = LoanAccountRepository(session)
        self.transactions = FinancialTransactionRepository(session)
        self.parties = party_directory or PartyRepository(session)
        self._now = now or datetime.now

    @asynccontextmanager
    async def _atomic(self, action: str, loan_account_id: Optional[int] = None) -> AsyncIterator[None]:
        """Commit everything staged inside the block, or roll all of it back."""
        try:
            yield
            await self.session.commit()
        except StaleDataError as exc:
            await self.session.rollback()
            logger.warning("%s on loan %s lost a concurrent update", action, loan_account_id)
            raise ConcurrencyConflictError(
                f"Loan account {loan_account_id} was modified by another writer, reload and retry",
                details={"loan_account_id": loan_account_id},
            ) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("%s failed to commit", action, extra={"loan_account_id": loan_account_id})
            raise PersistenceError(
                f"{action} could not be committed",
                details={"loan_account_id": loan_account_id},
            ) from exc
        except Exception:
            await self.session.rollback()
            raise

    async def _get_loan(self, loan_account_id: int) -> LoanAccount:
        loan = await self.loans.get_by_id(loan_account_id)
        if loan is None:
            raise NotFoundError("Loan account", loan_account_id)
        return loan

    async def _party_name(self, party_id: int) -> str:
        party = await self.parties.get_by_id(party_id)
        return party.name if party is not None else ""

    # Mutating operations

    async def create_loan(
        self,
        party_id: int,
        loan_type: LoanType,
        original_amount,
        interest_rate,
        created_by: int,
        start_date: Optional[datetime] = None,
        due_date: Optional[datetime] = None,
        payment_mode: PaymentMode = PaymentMode.CASH,
        notes: str = "",
    ) -> LoanAccount:
        """
        Open a loan account together with its disbursement entry.

        Raises:
            InvalidArgumentError: non-positive amount, negative rate, bad user id
            NotFoundError: the party does not exist
            PersistenceError: the commit failed, nothing was written
        """
        amount = _positive_money(original_amount, "original_amount")
        rate = to_rate(_decimal(interest_rate, "interest_rate"))
        if rate < 0:
            raise InvalidArgumentError("interest_rate cannot be negative", details={"interest_rate": str(interest_rate)})
        loan_type = LoanType(loan_type)
        payment_mode = PaymentMode(payment_mode)
        _user_id(created_by, "created_by")

        if not await self.parties.exists(party_id):
            raise NotFoundError("Party", party_id)
        party_name = await self._party_name(party_id)

        start_date = to_local_naive(start_date)
        due_date = to_local_naive(due_date)

        now = self._now()
        start = start_date or now
        loan = LoanAccount(
            party_id=party_id,
            loan_type=loan_type,
            original_amount=amount,
            interest_rate=rate,
            start_date=start,
            due_date=due_date,
            outstanding_principal=amount,
            outstanding_interest=ZERO,
            created_by=created_by,
            notes=notes,
            created_date=now,
        )
        refresh_derived_fields(loan, now)

        async with self._atomic("Loan creation"):
            await self.loans.add(loan)
            await self.transactions.add(FinancialTransaction(
                party_id=party_id,
                party_name=party_name,
                transaction_type=_DISBURSEMENT_TYPE[loan_type],
                amount=amount,
                payment_mode=payment_mode,
                interest_rate=rate,
                transaction_date=start,
                due_date=due_date,
                linked_loan_account_id=loan.id,
                entered_by=created_by,
                notes=f"Initial loan: {notes}" if notes else "Initial loan",
                created_date=now,
            ))

        logger.info(
            "Created %s loan %s for party %s: %s at %s%%",
            loan_type.value, loan.id, party_id, amount, rate,
            extra={"loan_account_id": loan.id},
        )
        return loan

    async def record_payment(
        self,
        loan_account_id: int,
        amount,
        entered_by: int,
        payment_mode: PaymentMode = PaymentMode.CASH,
        notes: str = "",
        accrue_interest: bool = False,
    ) -> FinancialTransaction:
        """
        Apply a payment to a loan, interest first and then principal.

        With accrue_interest, interest up to today is posted in the same
        commit before the payment is allocated.

        Raises:
            InvalidArgumentError: non-positive amount or bad user id
            NotFoundError: the loan does not exist
            InvalidStateError: the loan is closed or the payment exceeds the total outstanding
            PersistenceError: the commit failed, nothing was written
        """
        payment = _positive_money(amount, "amount")
        _user_id(entered_by, "entered_by")
        payment_mode = PaymentMode(payment_mode)

        loan = await self._get_loan(loan_account_id)
        if loan.status == LoanStatus.CLOSED:
            logger.warning("Rejected payment of %s on closed loan %s", payment, loan_account_id)
            raise InvalidStateError(
                f"Cannot record payment for closed loan {loan_account_id}",
                details={"loan_account_id": loan_account_id, "status": loan.status.value},
            )

        now = self._now()
        pending_interest = ZERO
        if accrue_interest:
            pending_interest, _ = await self._accrual_due(loan, now)

        outstanding = loan.total_outstanding + pending_interest
        if payment > outstanding:
            logger.warning(
                "Rejected payment of %s on loan %s, outstanding is %s",
                payment, loan_account_id, outstanding,
            )
            raise InvalidStateError(
                f"Payment amount ({payment}) exceeds outstanding amount ({outstanding})",
                details={
                    "loan_account_id": loan_account_id,
                    "amount": str(payment),
                    "total_outstanding": str(outstanding),
                },
            )

        party_name = await self._party_name(loan.party_id)
        async with self._atomic("Payment", loan_account_id):
            if accrue_interest:
                await self._stage_accrual(loan, now, party_name)

            interest_portion = min(payment, loan.outstanding_interest)
            principal_portion = min(payment - interest_portion, loan.outstanding_principal)
            loan.outstanding_interest = loan.outstanding_interest - interest_portion
            loan.outstanding_principal = loan.outstanding_principal - principal_portion
            loan.modified_date = now
            refresh_derived_fields(loan, now)

            entry = await self.transactions.add(FinancialTransaction(
                party_id=loan.party_id,
                party_name=party_name,
                transaction_type=_PAYMENT_TYPE[loan.loan_type],
                amount=payment,
                payment_mode=payment_mode,
                transaction_date=now,
                linked_loan_account_id=loan.id,
                entered_by=entered_by,
                notes=notes,
                created_date=now,
            ))

        logger.info(
            "Recorded payment of %s on loan %s (interest %s, principal %s), status %s",
            payment, loan.id, interest_portion, principal_portion, loan.status.value,
            extra={"loan_account_id": loan.id},
        )
        return entry

    async def update_loan_interest(self, loan_account_id: int) -> Optional[FinancialTransaction]:
        """
        Accrue simple interest since the last accrual (or the start date).

        Returns the posted accrual entry, or None when there is nothing to
        accrue: no full day has elapsed, the accrual rounds to zero, or the
        loan is closed. In that case nothing is written.
        """
        loan = await self._get_loan(loan_account_id)
        if loan.status == LoanStatus.CLOSED:
            logger.debug("Loan %s is closed, no interest accrued", loan_account_id)
            return None

        now = self._now()
        party_name = await self._party_name(loan.party_id)
        entry = None
        async with self._atomic("Interest accrual", loan_account_id):
            entry = await self._stage_accrual(loan, now, party_name)
        return entry

    async def _accrual_due(self, loan: LoanAccount, now: datetime) -> Tuple[Decimal, datetime]:
        """Interest owed since the later of the start date and the last accrual."""
        latest = await self.transactions.get_latest_accrual(loan.id)
        since = loan.start_date
        if latest is not None and latest.transaction_date > since:
            since = latest.transaction_date

        months = months_between(since.date(), now.date())
        return simple_interest(loan.outstanding_principal, loan.interest_rate, months), since

    async def _stage_accrual(
        self, loan: LoanAccount, now: datetime, party_name: str
    ) -> Optional[FinancialTransaction]:
        accrued, since = await self._accrual_due(loan, now)
        if accrued <= 0:
            logger.debug("No interest to accrue on loan %s since %s", loan.id, since.date())
            return None

        loan.outstanding_interest = loan.outstanding_interest + accrued
        loan.modified_date = now
        refresh_derived_fields(loan, now)

        entry = await self.transactions.add(FinancialTransaction(
            party_id=loan.party_id,
            party_name=party_name,
            transaction_type=_ACCRUAL_TYPE[loan.loan_type],
            amount=accrued,
            payment_mode=PaymentMode.LOAN,
            interest_rate=loan.interest_rate,
            interest_amount=accrued,
            transaction_date=now,
            linked_loan_account_id=loan.id,
            entered_by=loan.created_by,
            notes=f"Interest accrued for {(now.date() - since.date()).days} days",
            created_date=now,
        ))
        logger.info(
            "Accrued %s interest on loan %s since %s",
            accrued, loan.id, since.date(),
            extra={"loan_account_id": loan.id},
        )
        return entry

    # Queries

    async def get_loan(self, loan_account_id: int) -> LoanAccount:
        return await self._get_loan(loan_account_id)

    async def get_loan_with_transactions(self, loan_account_id: int) -> schemas.LoanWithTransactions:
        """Get a loan and its ledger entries, newest entry first."""
        loan = await self._get_loan(loan_account_id)
        entries = await self.transactions.get_by_loan_account_id(loan_account_id)
        return schemas.LoanWithTransactions(
            loan=schemas.LoanAccount.model_validate(loan),
            transactions=[transaction_schemas.FinancialTransaction.model_validate(e) for e in entries],
        )

    async def get_transactions_by_loan(self, loan_account_id: int) -> List[FinancialTransaction]:
        return await self.transactions.get_by_loan_account_id(loan_account_id)

    async def get_all_transactions(self) -> List[FinancialTransaction]:
        return await self.transactions.get_all()

    async def get_all_loans(self) -> List[LoanAccount]:
        return await self.loans.get_all()

    async def get_loans_by_type(self, loan_type: LoanType) -> List[LoanAccount]:
        return await self.loans.get_by_loan_type(LoanType(loan_type))

    async def get_loans_by_party(self, party_id: int) -> List[LoanAccount]:
        return await self.loans.get_by_party_id(party_id)

    async def get_active_loans_by_party(self, party_id: int) -> List[LoanAccount]:
        return await self.loans.get_active_loans_by_party(party_id)

    async def get_loans_by_status(self, status: LoanStatus) -> List[LoanAccount]:
        return await self.loans.get_by_status(LoanStatus(status))

    async def get_overdue_loans(self, as_of: Optional[datetime] = None) -> List[LoanAccount]:
        return await self.loans.get_overdue_loans(to_local_naive(as_of) or self._now())

    async def get_total_outstanding_by_type(self, loan_type: LoanType) -> Decimal:
        """Sum of total outstanding over Active, PartiallyPaid and Overdue loans of a type."""
        return await self.loans.get_total_outstanding_by_type(LoanType(loan_type))

    async def get_financial_summary(self) -> schemas.FinancialSummary:
        return schemas.FinancialSummary(
            total_loans_given=await self.loans.get_total_outstanding_by_type(LoanType.GIVEN),
            total_loans_taken=await self.loans.get_total_outstanding_by_type(LoanType.TAKEN),
            total_interest_receivable=await self.loans.get_total_interest_by_type(LoanType.GIVEN),
            total_interest_payable=await self.loans.get_total_interest_by_type(LoanType.TAKEN),
        )

    async def get_ledger_balance(self, loan_account_id: int) -> schemas.LedgerBalance:
        """
        Rebuild the balance from the ledger and compare it with the stored total.

        original amount + accrued interest - payments must equal total_outstanding.
        """
        loan = await self._get_loan(loan_account_id)
        entries = await self.transactions.get_by_loan_account_id(loan_account_id)
        balance = to_money(loan.original_amount)
        for entry in entries:
            if entry.transaction_type in ACCRUAL_TYPES:
                balance += entry.amount
            elif entry.transaction_type in PAYMENT_TYPES:
                balance -= entry.amount
        balance = to_money(balance)
        total = to_money(loan.total_outstanding)
        return schemas.LedgerBalance(
            loan_account_id=loan_account_id,
            ledger_balance=balance,
            total_outstanding=total,
            balanced=abs(balance - total) < CLOSE_TOLERANCE,
        )
