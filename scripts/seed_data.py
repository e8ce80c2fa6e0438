"""Script to seed sample parties and loans into the database."""

import asyncio
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from components.core.config import get_settings
from components.core.init_db import db_manager
from components.core.logging import setup_logging
from components.financial_transaction.models import PaymentMode
from components.loan.models import LoanType
from components.loan.service import LoanAccountingEngine
from components.party.models import PartyType
from components.party.repository import PartyRepository

logger = logging.getLogger(__name__)


async def seed_data():
    """Seed sample parties, loans and payments through the loan engine."""
    await db_manager.create_tables()

    async with db_manager.get_db() as db:
        parties = PartyRepository(db)
        lender = await parties.create("Sharma Traders", PartyType.LENDER, "9800000001", "Rajkot")
        borrower = await parties.create("Patel Mills", PartyType.BORROWER, "9800000002", "Morbi")
        both = await parties.create("Shree Finance", PartyType.FINANCIAL, "9800000003", "Ahmedabad")

        engine = LoanAccountingEngine(db)
        today = datetime.now()

        given = await engine.create_loan(
            party_id=borrower.id,
            loan_type=LoanType.GIVEN,
            original_amount=Decimal("100000"),
            interest_rate=Decimal("12"),
            created_by=1,
            start_date=today - timedelta(days=90),
            due_date=today + timedelta(days=275),
            notes="Working capital",
        )
        taken = await engine.create_loan(
            party_id=lender.id,
            loan_type=LoanType.TAKEN,
            original_amount=Decimal("50000"),
            interest_rate=Decimal("9.5"),
            created_by=1,
            start_date=today - timedelta(days=200),
            due_date=today - timedelta(days=20),
            payment_mode=PaymentMode.BANK,
        )
        await engine.create_loan(
            party_id=both.id,
            loan_type=LoanType.GIVEN,
            original_amount=Decimal("25000"),
            interest_rate=Decimal("0"),
            created_by=1,
        )

        await engine.update_loan_interest(given.id)
        await engine.record_payment(given.id, Decimal("10000"), entered_by=1, notes="First instalment")
        await engine.record_payment(
            taken.id, Decimal("20000"), entered_by=1,
            payment_mode=PaymentMode.BANK, accrue_interest=True,
        )

        summary = await engine.get_financial_summary()
        logger.info(
            "Seeded loans: given outstanding %s, taken outstanding %s",
            summary.total_loans_given, summary.total_loans_taken,
        )


if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    asyncio.run(seed_data())
