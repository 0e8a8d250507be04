"""
LedgerCore - Accounting Router

API endpoints for companies, the Chart of Accounts, fiscal years, journal
entries, GL posting and the trial balance. Producing modules integrate
through the /gl endpoints.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path, Header, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.database import get_db
from ledgercore.dependencies import get_ledger_context
from ledgercore.models.accounting import AccountType, JournalEntryStatus, JournalEntryType
from ledgercore.schemas.accounting import (
    CompanyCreate, CompanyResponse,
    AccountCreate, AccountUpdate, AccountResponse, AccountTree,
    FiscalYearCreate, FiscalYearResponse,
    JournalEntryCreate, JournalEntryUpdate, JournalEntryReverse,
    JournalEntryResponse, JournalEntryListResponse,
    GLPostingRequest, GLReverseRequest,
    TrialBalanceReport, TrialBalanceStatus, TrialBalanceSummary,
    AccountLedgerReport,
)
from ledgercore.services.company_service import CompanyService
from ledgercore.services.chart_of_accounts_service import ChartOfAccountsService
from ledgercore.services.fiscal_year_service import FiscalYearService
from ledgercore.services.journal_service import JournalService
from ledgercore.services.gl_posting_service import GLPostingService
from ledgercore.services.trial_balance_service import TrialBalanceService
from ledgercore.utils.error_handling import FiscalYearNotFoundError


companies_router = APIRouter(prefix="/api/v1/companies", tags=["Companies"])
router = APIRouter(prefix="/api/v1/companies/{company_id}", tags=["Accounting"])


# ============================================================================
# COMPANY ENDPOINTS
# ============================================================================

@companies_router.post("", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
async def create_company(
    data: CompanyCreate,
    x_user_id: Optional[uuid.UUID] = Header(None, description="Acting user"),
    db: AsyncSession = Depends(get_db),
):
    """Create a company, optionally with the default chart of accounts."""
    service = CompanyService(db)
    return await service.create_company(data, user_id=x_user_id)


@companies_router.get("/{company_id}", response_model=CompanyResponse)
async def get_company(
    company_id: uuid.UUID = Path(..., description="Company ID"),
    db: AsyncSession = Depends(get_db),
):
    """Get a company."""
    service = CompanyService(db)
    return await service.get_company(company_id)


# ============================================================================
# CHART OF ACCOUNTS ENDPOINTS
# ============================================================================

@router.get("/chart-of-accounts", response_model=List[AccountResponse])
async def list_accounts(
    account_type: Optional[AccountType] = Query(None, description="Filter by account type"),
    include_inactive: bool = Query(True, description="Include inactive accounts"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the chart of accounts."""
    service = ChartOfAccountsService(db)
    return await service.list_accounts(ctx, account_type=account_type, include_inactive=include_inactive)


@router.get("/chart-of-accounts/tree", response_model=List[AccountTree])
async def get_account_tree(
    parent_id: Optional[uuid.UUID] = Query(None, description="Subtree root (omit for the whole chart)"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the chart of accounts as a hierarchical tree."""
    service = ChartOfAccountsService(db)
    return await service.build_tree(ctx, parent_id=parent_id)


@router.get("/chart-of-accounts/ledgers", response_model=List[AccountResponse])
async def list_ledger_accounts(
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the accounts that can receive postings."""
    service = ChartOfAccountsService(db)
    return await service.list_ledgers(ctx)


@router.post("/chart-of-accounts", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: AccountCreate,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a new account in the chart of accounts."""
    service = ChartOfAccountsService(db)
    return await service.create_account(ctx, data)


@router.post("/chart-of-accounts/initialize", response_model=List[AccountResponse], status_code=status.HTTP_201_CREATED)
async def initialize_chart_of_accounts(
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Create the default Schedule III chart of accounts."""
    service = ChartOfAccountsService(db)
    return await service.create_default_chart_of_accounts(ctx)


@router.get("/chart-of-accounts/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: uuid.UUID = Path(..., description="Account ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get account by ID."""
    service = ChartOfAccountsService(db)
    return await service.get_account(ctx, account_id)


@router.put("/chart-of-accounts/{account_id}", response_model=AccountResponse)
async def update_account(
    data: AccountUpdate,
    account_id: uuid.UUID = Path(..., description="Account ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Update an account."""
    service = ChartOfAccountsService(db)
    return await service.update_account(ctx, account_id, data)


@router.delete("/chart-of-accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: uuid.UUID = Path(..., description="Account ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete a leaf account without postings."""
    service = ChartOfAccountsService(db)
    await service.delete_account(ctx, account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# FISCAL YEAR ENDPOINTS
# ============================================================================

@router.get("/fiscal-years", response_model=List[FiscalYearResponse])
async def list_fiscal_years(
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get all fiscal years, latest first."""
    service = FiscalYearService(db)
    return await service.list_fiscal_years(ctx)


@router.post("/fiscal-years", response_model=FiscalYearResponse, status_code=status.HTTP_201_CREATED)
async def create_fiscal_year(
    data: FiscalYearCreate,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a new fiscal year."""
    service = FiscalYearService(db)
    return await service.create_fiscal_year(ctx, data)


@router.get("/fiscal-years/current", response_model=FiscalYearResponse)
async def get_current_fiscal_year(
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the current fiscal year."""
    service = FiscalYearService(db)
    fiscal_year = await service.get_current_fiscal_year(ctx)
    if not fiscal_year:
        raise FiscalYearNotFoundError(message="No current fiscal year found")
    return fiscal_year


@router.post("/fiscal-years/{fiscal_year_id}/set-current", response_model=FiscalYearResponse)
async def set_current_fiscal_year(
    fiscal_year_id: uuid.UUID = Path(..., description="Fiscal year ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Mark a fiscal year as current."""
    service = FiscalYearService(db)
    return await service.set_current(ctx, fiscal_year_id)


@router.post("/fiscal-years/{fiscal_year_id}/lock", response_model=FiscalYearResponse)
async def lock_fiscal_year(
    fiscal_year_id: uuid.UUID = Path(..., description="Fiscal year ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Lock a fiscal year. Locking cannot be undone."""
    service = FiscalYearService(db)
    return await service.lock_fiscal_year(ctx, fiscal_year_id)


# ============================================================================
# JOURNAL ENTRY ENDPOINTS
# ============================================================================

@router.get("/journal-entries", response_model=JournalEntryListResponse)
async def list_journal_entries(
    fiscal_year_id: Optional[uuid.UUID] = Query(None, description="Filter by fiscal year"),
    from_date: Optional[date] = Query(None, description="Filter from date"),
    to_date: Optional[date] = Query(None, description="Filter to date"),
    entry_status: Optional[JournalEntryStatus] = Query(None, alias="status", description="Filter by status"),
    entry_type: Optional[JournalEntryType] = Query(None, description="Filter by type"),
    source_type: Optional[str] = Query(None, description="Filter by source document type"),
    source_id: Optional[uuid.UUID] = Query(None, description="Filter by source document"),
    limit: int = Query(50, ge=1, le=500, description="Limit results"),
    offset: int = Query(0, ge=0, description="Offset for pagination"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get journal entries with filters."""
    service = JournalService(db)
    entries, total = await service.list_entries(
        ctx,
        fiscal_year_id=fiscal_year_id,
        status=entry_status,
        entry_type=entry_type,
        from_date=from_date,
        to_date=to_date,
        source_type=source_type,
        source_id=source_id,
        limit=limit,
        offset=offset,
    )
    return JournalEntryListResponse(
        items=[JournalEntryResponse.model_validate(entry) for entry in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/journal-entries", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_journal_entry(
    data: JournalEntryCreate,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a journal entry.

    Debits must equal credits and every line must post to an active leaf
    account. Entries may be created as draft or posted directly.
    """
    service = JournalService(db)
    return await service.create_entry(ctx, data)


@router.get("/journal-entries/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(
    entry_id: uuid.UUID = Path(..., description="Journal entry ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get journal entry with lines."""
    service = JournalService(db)
    return await service.get_entry(ctx, entry_id)


@router.put("/journal-entries/{entry_id}", response_model=JournalEntryResponse)
async def update_journal_entry(
    data: JournalEntryUpdate,
    entry_id: uuid.UUID = Path(..., description="Journal entry ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Update a draft journal entry."""
    service = JournalService(db)
    return await service.update_entry(ctx, entry_id, data)


@router.delete("/journal-entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_journal_entry(
    entry_id: uuid.UUID = Path(..., description="Journal entry ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete a draft journal entry."""
    service = JournalService(db)
    await service.delete_entry(ctx, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/journal-entries/{entry_id}/post", response_model=JournalEntryResponse)
async def post_journal_entry(
    entry_id: uuid.UUID = Path(..., description="Journal entry ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Post a draft journal entry to the ledger."""
    service = JournalService(db)
    return await service.post_entry(ctx, entry_id)


@router.post("/journal-entries/{entry_id}/reverse", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def reverse_journal_entry(
    data: JournalEntryReverse,
    entry_id: uuid.UUID = Path(..., description="Journal entry ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Reverse a posted journal entry. Returns the reversal entry."""
    service = JournalService(db)
    return await service.reverse_entry(
        ctx,
        entry_id,
        reversal_date=data.reversal_date,
        narration=data.narration,
    )


# ============================================================================
# GL POSTING ENDPOINTS (for producing modules)
# ============================================================================

@router.post("/gl/post", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def post_to_gl(
    request: GLPostingRequest,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Post a business document's accounting impact.

    Lines may name accounts by ID or by system account code.
    """
    service = GLPostingService(db)
    return await service.post_document(ctx, request)


@router.post("/gl/reverse", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def reverse_gl_posting(
    request: GLReverseRequest,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Reverse the posted entry of a business document."""
    service = GLPostingService(db)
    return await service.reverse_document(
        ctx,
        request.source_type,
        request.source_id,
        reversal_date=request.reversal_date,
        narration=request.narration,
    )


# ============================================================================
# TRIAL BALANCE ENDPOINTS
# ============================================================================

@router.get("/trial-balance", response_model=TrialBalanceReport)
async def get_trial_balance(
    as_of_date: Optional[date] = Query(None, description="Report date (defaults to today)"),
    from_date: Optional[date] = Query(None, description="Period start; earlier postings form the opening balance"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Compute the trial balance and clear the stale flag."""
    service = TrialBalanceService(db)
    return await service.get_trial_balance(ctx, as_of_date or date.today(), from_date=from_date)


@router.get("/trial-balance/status", response_model=TrialBalanceStatus)
async def get_trial_balance_status(
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Whether the ledger changed since the trial balance was last computed."""
    service = TrialBalanceService(db)
    return await service.get_status(ctx)


@router.get("/trial-balance/summary", response_model=TrialBalanceSummary)
async def get_trial_balance_summary(
    as_of_date: Optional[date] = Query(None, description="Report date (defaults to today)"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Totals per account type and the accounting equation check."""
    service = TrialBalanceService(db)
    return await service.get_summary(ctx, as_of_date or date.today())


@router.get("/trial-balance/ledger/{account_id}", response_model=AccountLedgerReport)
async def get_account_ledger(
    account_id: uuid.UUID = Path(..., description="Account ID"),
    from_date: Optional[date] = Query(None, description="Period start"),
    to_date: Optional[date] = Query(None, description="Period end (defaults to today)"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """General ledger for one account with running balance."""
    service = TrialBalanceService(db)
    return await service.get_account_ledger(ctx, account_id, to_date or date.today(), from_date=from_date)
