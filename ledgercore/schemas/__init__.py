"""
LedgerCore - Schemas Package

Pydantic schemas for request/response validation.
"""

from ledgercore.schemas.accounting import (
    # Company
    CompanyCreate,
    CompanyResponse,
    # Chart of Accounts
    AccountCreate,
    AccountUpdate,
    AccountResponse,
    AccountTree,
    # Fiscal Years
    FiscalYearCreate,
    FiscalYearResponse,
    # Journal Entries
    JournalEntryLineCreate,
    JournalEntryLineResponse,
    JournalEntryCreate,
    JournalEntryUpdate,
    JournalEntryReverse,
    JournalEntryResponse,
    JournalEntryListResponse,
    # GL Posting
    GLPostingLine,
    GLPostingRequest,
    GLReverseRequest,
    # Trial Balance
    TrialBalanceItem,
    TrialBalanceTotals,
    TrialBalanceReport,
    TrialBalanceStatus,
    TrialBalanceSummary,
    AccountLedgerLine,
    AccountLedgerReport,
)
from ledgercore.schemas.reporting import (
    StatementLine,
    UnmappedAccount,
    BalanceSheetRequest,
    PeriodStatementRequest,
    BalanceSheetResult,
    ProfitLossResult,
    CashFlowSummary,
    CashFlowResult,
    StatementRunResponse,
    StatementRunDetail,
)
