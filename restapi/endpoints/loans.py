"""Loan account endpoints for the API."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from components.financial_transaction import schemas as transaction_schemas
from components.loan import schemas
from components.loan.models import LoanStatus, LoanType
from components.loan.service import LoanAccountingEngine
from restapi.endpoints.dependencies import get_engine

router = APIRouter(
    prefix="/loans",
    tags=["loans"],
    responses={404: {"description": "Not found"}},
)


@router.post("/", response_model=schemas.LoanAccount, status_code=status.HTTP_201_CREATED)
async def create_loan(
    loan_in: schemas.LoanCreate,
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """
    Open a loan account and post its disbursement entry.

    - Given: money lent to the party
    - Taken: money borrowed from the party
    """
    return await engine.create_loan(
        party_id=loan_in.party_id,
        loan_type=loan_in.loan_type,
        original_amount=loan_in.original_amount,
        interest_rate=loan_in.interest_rate,
        created_by=loan_in.created_by,
        start_date=loan_in.start_date,
        due_date=loan_in.due_date,
        payment_mode=loan_in.payment_mode,
        notes=loan_in.notes,
    )


@router.get("/", response_model=List[schemas.LoanAccount])
async def read_loans(
    loan_type: Optional[LoanType] = Query(None, description="Given or Taken"),
    party_id: Optional[int] = Query(None, description="Only loans held with this party"),
    loan_status: Optional[LoanStatus] = Query(None, alias="status", description="Only loans in this status"),
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """Get loans, optionally filtered by type, party and status."""
    if party_id is not None:
        loans = await engine.get_loans_by_party(party_id)
    elif loan_type is not None:
        loans = await engine.get_loans_by_type(loan_type)
    elif loan_status is not None:
        loans = await engine.get_loans_by_status(loan_status)
    else:
        loans = await engine.get_all_loans()

    if loan_type is not None:
        loans = [loan for loan in loans if loan.loan_type == loan_type]
    if loan_status is not None:
        loans = [loan for loan in loans if loan.status == loan_status]
    return loans


@router.get("/overdue", response_model=List[schemas.LoanAccount])
async def read_overdue_loans(engine: LoanAccountingEngine = Depends(get_engine)):
    """Get open loans past their due date, earliest due first."""
    return await engine.get_overdue_loans()


@router.get("/{loan_account_id}", response_model=schemas.LoanWithTransactions)
async def read_loan(
    loan_account_id: int,
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """Get a loan with its ledger entries, newest first."""
    return await engine.get_loan_with_transactions(loan_account_id)


@router.get("/{loan_account_id}/transactions", response_model=List[transaction_schemas.FinancialTransaction])
async def read_loan_transactions(
    loan_account_id: int,
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """Get a loan's ledger entries. Unknown loans return an empty list."""
    return await engine.get_transactions_by_loan(loan_account_id)


@router.get("/{loan_account_id}/balance", response_model=schemas.LedgerBalance)
async def read_loan_balance(
    loan_account_id: int,
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """Reconcile the ledger against the loan's stored total outstanding."""
    return await engine.get_ledger_balance(loan_account_id)


@router.post(
    "/{loan_account_id}/payments",
    response_model=transaction_schemas.FinancialTransaction,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    loan_account_id: int,
    payment_in: schemas.PaymentCreate,
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """
    Record a repayment (loan given) or payment (loan taken).

    The amount settles accrued interest first, then principal. Amounts above
    the total outstanding are rejected.
    """
    return await engine.record_payment(
        loan_account_id,
        amount=payment_in.amount,
        entered_by=payment_in.entered_by,
        payment_mode=payment_in.payment_mode,
        notes=payment_in.notes,
        accrue_interest=payment_in.accrue_interest,
    )


@router.post("/{loan_account_id}/interest", response_model=schemas.InterestAccrual)
async def accrue_interest(
    loan_account_id: int,
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """Accrue simple interest up to today. posted is false when nothing was due."""
    entry = await engine.update_loan_interest(loan_account_id)
    loan = await engine.get_loan(loan_account_id)
    return schemas.InterestAccrual(
        posted=entry is not None,
        transaction=transaction_schemas.FinancialTransaction.model_validate(entry) if entry else None,
        loan=schemas.LoanAccount.model_validate(loan),
    )
