"""
LedgerCore - Test Configuration

Pytest fixtures and configuration.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable, Dict, List, Tuple

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import ledgercore.models  # noqa: F401  (registers every table on the metadata)
from ledgercore.context import LedgerContext
from ledgercore.database import Base, get_async_session
from ledgercore.models.accounting import JournalEntry, JournalEntryStatus
from ledgercore.schemas.accounting import (
    CompanyCreate,
    FiscalYearCreate,
    JournalEntryCreate,
    JournalEntryLineCreate,
)
from ledgercore.services.chart_of_accounts_service import ChartOfAccountsService
from ledgercore.services.company_service import CompanyService
from ledgercore.services.fiscal_year_service import FiscalYearService
from ledgercore.services.journal_service import JournalService
from main import app


# In-memory database shared by every connection of one test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

# (account code, debit, credit)
LineSpec = Tuple[str, str, str]


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database and session for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def ctx(db_session: AsyncSession) -> LedgerContext:
    """A company with the default chart of accounts, seen by a known user."""
    user_id = uuid.uuid4()
    company = await CompanyService(db_session).create_company(
        CompanyCreate(name="Acme Traders Pvt Ltd", with_default_chart=True),
        user_id=user_id,
    )
    return LedgerContext(company_id=company.id, user_id=user_id)


@pytest_asyncio.fixture
async def bare_ctx(db_session: AsyncSession) -> LedgerContext:
    """A company without any accounts."""
    company = await CompanyService(db_session).create_company(CompanyCreate(name="Blank Books LLP"))
    return LedgerContext(company_id=company.id)


@pytest_asyncio.fixture
async def accounts(db_session: AsyncSession, ctx: LedgerContext) -> Dict[str, uuid.UUID]:
    """Account IDs of the default chart keyed by code."""
    rows = await ChartOfAccountsService(db_session).list_accounts(ctx)
    return {account.code: account.id for account in rows}


@pytest_asyncio.fixture
async def fiscal_year_id(db_session: AsyncSession, ctx: LedgerContext) -> uuid.UUID:
    """Current fiscal year FY 2024-25 (April to March)."""
    fiscal_year = await FiscalYearService(db_session).create_fiscal_year(
        ctx,
        FiscalYearCreate(
            name="FY 2024-25",
            start_date=date(2024, 4, 1),
            end_date=date(2025, 3, 31),
            is_current=True,
        ),
    )
    return fiscal_year.id


@pytest.fixture
def build_entry(
    accounts: Dict[str, uuid.UUID],
    fiscal_year_id: uuid.UUID,
) -> Callable[..., JournalEntryCreate]:
    """Build a journal entry payload from (code, debit, credit) tuples."""

    def build(
        entry_date: date,
        lines: List[LineSpec],
        status: JournalEntryStatus = JournalEntryStatus.POSTED,
        narration: str = "Test entry",
        fiscal_year: uuid.UUID = None,
    ) -> JournalEntryCreate:
        return JournalEntryCreate(
            fiscal_year_id=fiscal_year or fiscal_year_id,
            entry_date=entry_date,
            narration=narration,
            status=status,
            lines=[
                JournalEntryLineCreate(
                    account_id=accounts[code],
                    debit_amount=Decimal(debit),
                    credit_amount=Decimal(credit),
                )
                for code, debit, credit in lines
            ],
        )

    return build


@pytest.fixture
def post_entry(
    db_session: AsyncSession,
    ctx: LedgerContext,
    build_entry: Callable[..., JournalEntryCreate],
) -> Callable[..., Awaitable[JournalEntry]]:
    """Create a journal entry through the journal service."""

    async def post(entry_date: date, lines: List[LineSpec], **kwargs) -> JournalEntry:
        return await JournalService(db_session).create_entry(ctx, build_entry(entry_date, lines, **kwargs))

    return post


@pytest_asyncio.fixture
async def trading_year(post_entry) -> None:
    """
    One year of trading in FY 2024-25.

    Net profit 58,000; closing cash 460,000; total assets 576,000.
    """
    # Capital introduced
    await post_entry(date(2024, 4, 1), [("1242", "500000", "0"), ("3110", "0", "500000")])
    # Credit sale with GST
    await post_entry(
        date(2024, 5, 10),
        [("1230", "118000", "0"), ("4110", "0", "100000"), ("2231", "0", "18000")],
    )
    # Rent paid
    await post_entry(date(2024, 6, 1), [("5610", "30000", "0"), ("1242", "0", "30000")])
    # Computer bought
    await post_entry(date(2024, 7, 15), [("1117", "60000", "0"), ("1242", "0", "60000")])
    # Customer settles part of the invoice
    await post_entry(date(2024, 9, 30), [("1242", "50000", "0"), ("1230", "0", "50000")])
    # Depreciation for the year
    await post_entry(date(2025, 3, 31), [("5510", "12000", "0"), ("1119", "0", "12000")])
