"""
Centralized Test Configuration.
"""

import os

# Point the application's own engine at an in-memory store before settings are cached
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from components.core.database import Base
from components.core.init_db import get_db
from components.loan.models import LoanAccount, LoanStatus
from components.loan.service import LoanAccountingEngine
from components.loan.status import CLOSE_TOLERANCE
from components.party.models import PartyType
from components.party.repository import PartyRepository
from restapi.router import create_app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
FIXED_NOW = datetime(2026, 6, 15, 10, 0, 0)


class Clock:
    """Controllable clock handed to the engine."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def assert_loan_invariants(loan: LoanAccount) -> None:
    """Balance and status invariants that must hold after every operation."""
    assert loan.outstanding_principal >= 0
    assert loan.outstanding_interest >= 0
    assert abs(loan.total_outstanding - (loan.outstanding_principal + loan.outstanding_interest)) < CLOSE_TOLERANCE
    assert (loan.status == LoanStatus.CLOSED) == (loan.total_outstanding == Decimal("0"))


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def parties(session_factory):
    """Three committed parties: a borrower, a lender and a financial party."""
    async with session_factory() as session:
        repo = PartyRepository(session)
        return [
            await repo.create("Patel Mills", PartyType.BORROWER, "9800000001", "Morbi"),
            await repo.create("Sharma Traders", PartyType.LENDER, "9800000002", "Rajkot"),
            await repo.create("Shree Finance", PartyType.FINANCIAL, "9800000003", "Ahmedabad"),
        ]


@pytest.fixture
async def db_session(session_factory, parties):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> Clock:
    return Clock(FIXED_NOW)


@pytest.fixture
def engine(db_session, clock) -> LoanAccountingEngine:
    return LoanAccountingEngine(db_session, now=clock)


@pytest.fixture
async def client(session_factory, parties):
    """Async client for testing, with request sessions bound to the test store."""
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}
