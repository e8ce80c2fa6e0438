"""
Loan accounting engine tests.

Covers loan creation, payment allocation, interest accrual, status
derivation and the ledger identity after every operation.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from components.core.exceptions import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
)
from components.financial_transaction.models import (
    FinancialTransaction,
    FinancialTransactionType,
    PaymentMode,
)
from components.loan.models import LoanAccount, LoanStatus, LoanType
from conftest import FIXED_NOW, assert_loan_invariants


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def _given_loan(engine, party, **kwargs):
    params = dict(
        party_id=party.id,
        loan_type=LoanType.GIVEN,
        original_amount=Decimal("100000"),
        interest_rate=Decimal("12"),
        created_by=1,
    )
    params.update(kwargs)
    return await engine.create_loan(**params)


# Creation

@pytest.mark.asyncio
async def test_create_given_loan(engine, parties):
    """A new Given loan starts Active with one LoanGiven disbursement."""
    loan = await _given_loan(engine, parties[0])

    assert loan.id is not None
    assert loan.outstanding_principal == Decimal("100000")
    assert loan.outstanding_interest == Decimal("0")
    assert loan.total_outstanding == Decimal("100000")
    assert loan.status == LoanStatus.ACTIVE
    assert_loan_invariants(loan)

    entries = await engine.get_transactions_by_loan(loan.id)
    assert len(entries) == 1
    assert entries[0].transaction_type == FinancialTransactionType.LOAN_GIVEN
    assert entries[0].amount == Decimal("100000")
    assert entries[0].linked_loan_account_id == loan.id
    assert entries[0].party_name == "Patel Mills"
    assert entries[0].debit_credit == "Debit"


@pytest.mark.asyncio
async def test_create_taken_loan_posts_loan_taken(engine, parties):
    loan = await engine.create_loan(
        party_id=parties[1].id,
        loan_type=LoanType.TAKEN,
        original_amount=Decimal("50000"),
        interest_rate=Decimal("3"),
        created_by=1,
        payment_mode=PaymentMode.BANK,
        notes="Machinery purchase",
    )

    entries = await engine.get_transactions_by_loan(loan.id)
    assert len(entries) == 1
    assert entries[0].transaction_type == FinancialTransactionType.LOAN_TAKEN
    assert entries[0].payment_mode == PaymentMode.BANK
    assert entries[0].notes == "Initial loan: Machinery purchase"
    assert entries[0].debit_credit == "Credit"


@pytest.mark.asyncio
async def test_create_loan_rounds_amounts_to_cents(engine, parties):
    loan = await _given_loan(engine, parties[0], original_amount="1234.565", interest_rate="7.125")

    assert loan.original_amount == Decimal("1234.57")
    assert loan.interest_rate == Decimal("7.13")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-100"), Decimal("0.001")])
async def test_create_loan_rejects_non_positive_amount(engine, parties, db_session, amount):
    """Rejected creation writes neither an account nor a ledger entry."""
    with pytest.raises(InvalidArgumentError):
        await _given_loan(engine, parties[0], original_amount=amount)

    assert await _count(db_session, LoanAccount) == 0
    assert await _count(db_session, FinancialTransaction) == 0


@pytest.mark.asyncio
async def test_create_loan_rejects_negative_rate(engine, parties):
    with pytest.raises(InvalidArgumentError):
        await _given_loan(engine, parties[0], interest_rate=Decimal("-1"))


@pytest.mark.asyncio
async def test_create_loan_rejects_unknown_party(engine, db_session):
    with pytest.raises(NotFoundError) as exc_info:
        await engine.create_loan(
            party_id=999,
            loan_type=LoanType.GIVEN,
            original_amount=Decimal("100"),
            interest_rate=Decimal("0"),
            created_by=1,
        )

    assert exc_info.value.details == {"resource": "Party", "id": 999}
    assert await _count(db_session, LoanAccount) == 0


@pytest.mark.asyncio
async def test_create_loan_rejects_bad_user_id(engine, parties):
    with pytest.raises(InvalidArgumentError):
        await _given_loan(engine, parties[0], created_by=0)


@pytest.mark.asyncio
async def test_create_loan_commit_failure_leaves_nothing(engine, parties, db_session, monkeypatch):
    """A failed commit surfaces as PersistenceError and rolls back both rows."""
    async def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(PersistenceError) as exc_info:
        await _given_loan(engine, parties[0])

    assert isinstance(exc_info.value.__cause__, OperationalError)
    monkeypatch.undo()
    assert await _count(db_session, LoanAccount) == 0
    assert await _count(db_session, FinancialTransaction) == 0


# Payments

@pytest.mark.asyncio
async def test_two_payments_leave_loan_partially_paid(engine, parties):
    loan = await _given_loan(engine, parties[0])

    await engine.record_payment(loan.id, Decimal("10000"), entered_by=1)
    await engine.record_payment(loan.id, Decimal("15000"), entered_by=1)

    assert loan.total_outstanding == Decimal("75000")
    assert loan.status == LoanStatus.PARTIALLY_PAID
    assert_loan_invariants(loan)
    assert len(await engine.get_transactions_by_loan(loan.id)) == 3


@pytest.mark.asyncio
async def test_taken_loan_paid_in_full_is_closed(engine, parties):
    loan = await engine.create_loan(
        party_id=parties[1].id,
        loan_type=LoanType.TAKEN,
        original_amount=Decimal("50000"),
        interest_rate=Decimal("10"),
        created_by=1,
    )

    first = await engine.record_payment(loan.id, Decimal("20000"), entered_by=1)
    second = await engine.record_payment(loan.id, Decimal("30000"), entered_by=1)

    assert first.transaction_type == FinancialTransactionType.LOAN_PAYMENT
    assert second.amount == Decimal("30000")
    assert loan.total_outstanding == Decimal("0")
    assert loan.outstanding_principal == Decimal("0")
    assert loan.status == LoanStatus.CLOSED
    assert_loan_invariants(loan)


@pytest.mark.asyncio
async def test_payment_equal_to_outstanding_closes_loan(engine, parties):
    loan = await _given_loan(engine, parties[0])

    entry = await engine.record_payment(loan.id, loan.total_outstanding, entered_by=2)

    assert entry.transaction_type == FinancialTransactionType.LOAN_REPAYMENT
    assert entry.entered_by == 2
    assert loan.status == LoanStatus.CLOSED
    assert loan.total_outstanding == Decimal("0")


@pytest.mark.asyncio
async def test_payment_on_closed_loan_is_rejected(engine, parties):
    loan = await _given_loan(engine, parties[0], original_amount=Decimal("500"))
    await engine.record_payment(loan.id, Decimal("500"), entered_by=1)

    with pytest.raises(InvalidStateError):
        await engine.record_payment(loan.id, Decimal("1"), entered_by=1)

    assert len(await engine.get_transactions_by_loan(loan.id)) == 2


@pytest.mark.asyncio
async def test_overpayment_is_rejected_without_side_effects(engine, parties):
    loan = await _given_loan(engine, parties[0])

    with pytest.raises(InvalidStateError) as exc_info:
        await engine.record_payment(loan.id, Decimal("100000.01"), entered_by=1)

    assert exc_info.value.details["total_outstanding"] == "100000.00"
    assert loan.total_outstanding == Decimal("100000")
    assert loan.status == LoanStatus.ACTIVE
    assert len(await engine.get_transactions_by_loan(loan.id)) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "not-a-number", Decimal("NaN")])
async def test_payment_rejects_invalid_amount(engine, parties, amount):
    loan = await _given_loan(engine, parties[0])

    with pytest.raises(InvalidArgumentError):
        await engine.record_payment(loan.id, amount, entered_by=1)


@pytest.mark.asyncio
async def test_payment_on_unknown_loan_is_not_found(engine):
    with pytest.raises(NotFoundError):
        await engine.record_payment(404, Decimal("10"), entered_by=1)


@pytest.mark.asyncio
async def test_payment_settles_interest_before_principal(engine, parties, clock):
    loan = await _given_loan(engine, parties[0], start_date=FIXED_NOW - timedelta(days=31))
    await engine.update_loan_interest(loan.id)
    assert loan.outstanding_interest == Decimal("1000.00")

    await engine.record_payment(loan.id, Decimal("1500"), entered_by=1)

    assert loan.outstanding_interest == Decimal("0")
    assert loan.outstanding_principal == Decimal("99500")
    assert loan.total_outstanding == Decimal("99500")
    assert loan.status == LoanStatus.PARTIALLY_PAID
    assert_loan_invariants(loan)


@pytest.mark.asyncio
async def test_interest_only_payment_leaves_principal(engine, parties):
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 5, 15, 9, 0))
    await engine.update_loan_interest(loan.id)

    await engine.record_payment(loan.id, Decimal("400"), entered_by=1)

    assert loan.outstanding_interest == Decimal("600")
    assert loan.outstanding_principal == Decimal("100000")
    assert loan.status == LoanStatus.ACTIVE


@pytest.mark.asyncio
async def test_payment_can_accrue_interest_first(engine, parties):
    """With accrue_interest the accrual and the payment land in one commit."""
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 5, 15, 9, 0))

    await engine.record_payment(loan.id, Decimal("101000"), entered_by=1, accrue_interest=True)

    entries = await engine.get_transactions_by_loan(loan.id)
    assert [e.transaction_type for e in entries].count(FinancialTransactionType.INTEREST_RECEIVED) == 1
    assert loan.status == LoanStatus.CLOSED
    balance = await engine.get_ledger_balance(loan.id)
    assert balance.balanced


@pytest.mark.asyncio
async def test_accrue_then_overpay_is_rejected_and_nothing_posted(engine, parties):
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 5, 15, 9, 0))

    with pytest.raises(InvalidStateError):
        await engine.record_payment(loan.id, Decimal("101000.01"), entered_by=1, accrue_interest=True)

    assert len(await engine.get_transactions_by_loan(loan.id)) == 1


# Interest accrual

@pytest.mark.asyncio
async def test_one_month_of_interest(engine, parties):
    """One calendar month at 12% p.a. on 100000 accrues 1000."""
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 5, 15, 10, 0))

    entry = await engine.update_loan_interest(loan.id)

    assert entry is not None
    assert entry.transaction_type == FinancialTransactionType.INTEREST_RECEIVED
    assert entry.interest_amount == Decimal("1000.00")
    assert entry.amount == Decimal("1000.00")
    assert entry.interest_rate == Decimal("12")
    assert loan.outstanding_interest == Decimal("1000.00")
    assert loan.total_outstanding == loan.outstanding_principal + Decimal("1000")
    assert_loan_invariants(loan)


@pytest.mark.asyncio
async def test_interest_accrual_is_idempotent_within_a_day(engine, parties, db_session):
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 5, 15, 10, 0))
    await engine.update_loan_interest(loan.id)
    before = (loan.outstanding_principal, loan.outstanding_interest, loan.total_outstanding)

    assert await engine.update_loan_interest(loan.id) is None

    assert (loan.outstanding_principal, loan.outstanding_interest, loan.total_outstanding) == before
    assert await _count(db_session, FinancialTransaction) == 2


@pytest.mark.asyncio
async def test_interest_accrues_from_last_accrual(engine, parties, clock):
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 5, 15, 10, 0))
    await engine.update_loan_interest(loan.id)

    clock.advance(days=15)  # June 15 -> June 30, half of a 30-day month
    entry = await engine.update_loan_interest(loan.id)

    assert entry.interest_amount == Decimal("500.00")
    assert loan.outstanding_interest == Decimal("1500.00")


@pytest.mark.asyncio
async def test_interest_uses_current_principal(engine, parties, clock):
    loan = await _given_loan(engine, parties[0])
    await engine.record_payment(loan.id, Decimal("50000"), entered_by=1)

    clock.advance(days=30)  # June 15 -> July 15
    entry = await engine.update_loan_interest(loan.id)

    assert entry.interest_amount == Decimal("500.00")


@pytest.mark.asyncio
async def test_taken_loan_accrues_interest_paid(engine, parties):
    loan = await engine.create_loan(
        party_id=parties[1].id,
        loan_type=LoanType.TAKEN,
        original_amount=Decimal("60000"),
        interest_rate=Decimal("6"),
        created_by=1,
        start_date=datetime(2026, 3, 15),
    )

    entry = await engine.update_loan_interest(loan.id)

    assert entry.transaction_type == FinancialTransactionType.INTEREST_PAID
    assert entry.interest_amount == Decimal("900.00")  # 60000 * 6% * 3/12


@pytest.mark.asyncio
async def test_zero_rate_loan_accrues_nothing(engine, parties):
    loan = await _given_loan(engine, parties[0], interest_rate=Decimal("0"), start_date=datetime(2025, 6, 15))

    assert await engine.update_loan_interest(loan.id) is None
    assert loan.outstanding_interest == Decimal("0")


@pytest.mark.asyncio
async def test_closed_loan_accrues_nothing(engine, parties):
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 6, 1))
    await engine.record_payment(loan.id, Decimal("100000"), entered_by=1)

    assert await engine.update_loan_interest(loan.id) is None


@pytest.mark.asyncio
async def test_interest_on_unknown_loan_is_not_found(engine):
    with pytest.raises(NotFoundError):
        await engine.update_loan_interest(12345)


# Status derivation

@pytest.mark.asyncio
async def test_accrual_after_partial_payment_stays_partially_paid(engine, parties):
    """Interest pushing the total back above the original amount keeps PartiallyPaid."""
    loan = await _given_loan(
        engine, parties[0], original_amount=Decimal("1000"), start_date=datetime(2024, 6, 15, 10, 0),
    )
    await engine.record_payment(loan.id, Decimal("100"), entered_by=1)
    assert loan.status == LoanStatus.PARTIALLY_PAID
    assert loan.total_outstanding == Decimal("900")

    entry = await engine.update_loan_interest(loan.id)

    assert entry.interest_amount == Decimal("216.00")  # 900 * 12% * 2 years
    assert loan.total_outstanding == Decimal("1116.00")
    assert loan.status == LoanStatus.PARTIALLY_PAID
    assert_loan_invariants(loan)


@pytest.mark.asyncio
async def test_create_loan_stores_aware_dates_as_local_naive(engine, parties):
    due = datetime(2030, 1, 1, tzinfo=timezone.utc)
    start = datetime(2026, 6, 1, 4, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))

    loan = await _given_loan(engine, parties[0], start_date=start, due_date=due)

    assert loan.due_date.tzinfo is None
    assert loan.due_date == due.astimezone().replace(tzinfo=None)
    assert loan.start_date == start.astimezone().replace(tzinfo=None)
    assert loan.status == LoanStatus.ACTIVE
    entries = await engine.get_transactions_by_loan(loan.id)
    assert entries[0].transaction_date == loan.start_date


@pytest.mark.asyncio
async def test_overdue_loans_accept_aware_cutoff(engine, parties):
    loan = await _given_loan(engine, parties[0], due_date=FIXED_NOW + timedelta(days=1))

    cutoff = (FIXED_NOW + timedelta(days=3)).astimezone(timezone.utc)
    overdue = await engine.get_overdue_loans(cutoff)
    assert [o.id for o in overdue] == [loan.id]



@pytest.mark.asyncio
async def test_loan_past_due_date_becomes_overdue(engine, parties, clock):
    loan = await _given_loan(engine, parties[0], due_date=FIXED_NOW + timedelta(days=10))

    clock.advance(days=20)
    await engine.record_payment(loan.id, Decimal("1000"), entered_by=1)

    assert loan.status == LoanStatus.OVERDUE
    assert_loan_invariants(loan)

    await engine.record_payment(loan.id, Decimal("99000"), entered_by=1)
    assert loan.status == LoanStatus.CLOSED


@pytest.mark.asyncio
async def test_accrual_after_due_date_marks_overdue(engine, parties, clock):
    loan = await _given_loan(engine, parties[0], due_date=FIXED_NOW + timedelta(days=5))

    clock.advance(days=10)
    await engine.update_loan_interest(loan.id)

    assert loan.status == LoanStatus.OVERDUE


# Ledger consistency

@pytest.mark.asyncio
async def test_ledger_balance_matches_outstanding_throughout(engine, parties, clock):
    loan = await _given_loan(engine, parties[0], start_date=datetime(2026, 1, 15))

    steps = [
        lambda: engine.update_loan_interest(loan.id),
        lambda: engine.record_payment(loan.id, Decimal("7000"), entered_by=1),
        lambda: engine.record_payment(loan.id, Decimal("12345.67"), entered_by=1),
        lambda: engine.update_loan_interest(loan.id),
    ]
    for step in steps:
        await step()
        clock.advance(days=17)
        balance = await engine.get_ledger_balance(loan.id)
        assert balance.balanced, balance
        assert_loan_invariants(loan)


@pytest.mark.asyncio
async def test_get_loan_with_transactions_is_stable_and_newest_first(engine, parties, clock):
    loan = await _given_loan(engine, parties[0])
    clock.advance(days=1)
    await engine.record_payment(loan.id, Decimal("100"), entered_by=1)
    clock.advance(days=1)
    await engine.record_payment(loan.id, Decimal("200"), entered_by=1)

    first = await engine.get_loan_with_transactions(loan.id)
    second = await engine.get_loan_with_transactions(loan.id)

    assert first == second
    assert [t.amount for t in first.transactions] == [Decimal("200"), Decimal("100"), Decimal("100000")]
    assert first.loan.total_outstanding == Decimal("99700")


@pytest.mark.asyncio
async def test_get_loan_with_transactions_unknown_loan(engine):
    with pytest.raises(NotFoundError):
        await engine.get_loan_with_transactions(77)


@pytest.mark.asyncio
async def test_transactions_for_unknown_loan_is_empty(engine):
    assert await engine.get_transactions_by_loan(77) == []


# Queries

@pytest.mark.asyncio
async def test_loans_by_type(engine, parties):
    await _given_loan(engine, parties[0])
    await _given_loan(engine, parties[2], original_amount=Decimal("2500"))
    await engine.create_loan(
        party_id=parties[1].id,
        loan_type=LoanType.TAKEN,
        original_amount=Decimal("40000"),
        interest_rate=Decimal("8"),
        created_by=1,
    )

    assert len(await engine.get_loans_by_type(LoanType.GIVEN)) == 2
    assert len(await engine.get_loans_by_type(LoanType.TAKEN)) == 1
    assert len(await engine.get_all_loans()) == 3


@pytest.mark.asyncio
async def test_loans_by_party_and_status(engine, parties):
    open_loan = await _given_loan(engine, parties[0])
    closed_loan = await _given_loan(engine, parties[0], original_amount=Decimal("300"))
    await _given_loan(engine, parties[2])
    await engine.record_payment(closed_loan.id, Decimal("300"), entered_by=1)

    by_party = await engine.get_loans_by_party(parties[0].id)
    assert {loan.id for loan in by_party} == {open_loan.id, closed_loan.id}

    active = await engine.get_active_loans_by_party(parties[0].id)
    assert [loan.id for loan in active] == [open_loan.id]

    closed = await engine.get_loans_by_status(LoanStatus.CLOSED)
    assert [loan.id for loan in closed] == [closed_loan.id]
    assert await engine.get_loans_by_party(999) == []


@pytest.mark.asyncio
async def test_total_outstanding_by_type_skips_closed_loans(engine, parties):
    loan = await _given_loan(engine, parties[0])
    closed = await _given_loan(engine, parties[2], original_amount=Decimal("40000"))
    await engine.record_payment(loan.id, Decimal("25000"), entered_by=1)
    await engine.record_payment(closed.id, Decimal("40000"), entered_by=1)

    assert await engine.get_total_outstanding_by_type(LoanType.GIVEN) == Decimal("75000")
    assert await engine.get_total_outstanding_by_type(LoanType.TAKEN) == Decimal("0")


@pytest.mark.asyncio
async def test_financial_summary(engine, parties):
    given = await _given_loan(engine, parties[0], start_date=datetime(2026, 5, 15, 10, 0))
    taken = await engine.create_loan(
        party_id=parties[1].id,
        loan_type=LoanType.TAKEN,
        original_amount=Decimal("60000"),
        interest_rate=Decimal("6"),
        created_by=1,
        start_date=datetime(2026, 3, 15),
    )
    await engine.update_loan_interest(given.id)
    await engine.update_loan_interest(taken.id)

    summary = await engine.get_financial_summary()

    assert summary.total_loans_given == Decimal("101000")
    assert summary.total_loans_taken == Decimal("60900")
    assert summary.total_interest_receivable == Decimal("1000")
    assert summary.total_interest_payable == Decimal("900")


@pytest.mark.asyncio
async def test_overdue_loans_ordered_by_due_date(engine, parties, clock):
    later = await _given_loan(engine, parties[0], due_date=FIXED_NOW + timedelta(days=5))
    earlier = await _given_loan(engine, parties[2], due_date=FIXED_NOW + timedelta(days=2))
    await _given_loan(engine, parties[0], due_date=FIXED_NOW + timedelta(days=60))
    await _given_loan(engine, parties[0])

    assert await engine.get_overdue_loans() == []

    clock.advance(days=10)
    overdue = await engine.get_overdue_loans()
    assert [loan.id for loan in overdue] == [earlier.id, later.id]
