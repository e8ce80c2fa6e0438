"""Dashboard summary endpoints for the API."""

from fastapi import APIRouter, Depends

from components.loan import schemas
from components.loan.models import LoanType
from components.loan.service import LoanAccountingEngine
from restapi.endpoints.dependencies import get_engine

router = APIRouter(
    prefix="/summary",
    tags=["summary"],
)


@router.get("/", response_model=schemas.FinancialSummary)
async def get_financial_summary(engine: LoanAccountingEngine = Depends(get_engine)):
    """
    Get outstanding totals for the dashboard.

    Returns:
    - Total outstanding on loans given and taken
    - Unpaid interest receivable (loans given) and payable (loans taken)
    """
    return await engine.get_financial_summary()


@router.get("/outstanding/{loan_type}", response_model=schemas.OutstandingTotal)
async def get_total_outstanding(
    loan_type: LoanType,
    engine: LoanAccountingEngine = Depends(get_engine),
):
    """Sum of total outstanding across open loans of one type."""
    return schemas.OutstandingTotal(
        loan_type=loan_type,
        total_outstanding=await engine.get_total_outstanding_by_type(loan_type),
    )
