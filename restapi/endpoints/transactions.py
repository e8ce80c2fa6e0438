"""Ledger entry endpoints for the API."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from components.financial_transaction import schemas
from components.financial_transaction.models import FinancialTransactionType
from components.loan.service import LoanAccountingEngine, to_local_naive
from restapi.endpoints.dependencies import get_engine

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)


@router.get("/", response_model=List[schemas.FinancialTransaction])
async def read_transactions(
    party_id: Optional[int] = Query(None, description="Only entries with this party"),
    transaction_type: Optional[FinancialTransactionType] = Query(None, description="Only entries of this type"),
    start_date: Optional[datetime] = Query(None, description="Entries dated on or after"),
    end_date: Optional[datetime] = Query(None, description="Entries dated on or before"),
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """Get ledger entries, newest first, with optional filters."""
    start_date = to_local_naive(start_date)
    end_date = to_local_naive(end_date)
    repo = engine.transactions
    if party_id is not None:
        entries = await repo.get_by_party_id(party_id)
    elif transaction_type is not None:
        entries = await repo.get_by_type(transaction_type)
    elif start_date is not None or end_date is not None:
        entries = await repo.get_by_date_range(start_date or datetime.min, end_date or datetime.max)
    else:
        entries = await engine.get_all_transactions()

    if transaction_type is not None:
        entries = [e for e in entries if e.transaction_type == transaction_type]
    if start_date is not None:
        entries = [e for e in entries if e.transaction_date >= start_date]
    if end_date is not None:
        entries = [e for e in entries if e.transaction_date <= end_date]
    return entries
