"""
LedgerCore - Accounting Schemas

Pydantic schemas for companies, the Chart of Accounts, fiscal years,
journal entries, GL posting and the trial balance.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from ledgercore.models.accounting import (
    AccountType,
    BalanceSide,
    CashFlowClass,
    JournalEntryStatus,
    JournalEntryType,
    PartyType,
)
from ledgercore.models.company import GAAPStandard


# =============================================================================
# COMPANY SCHEMAS
# =============================================================================

class CompanyCreate(BaseModel):
    """Schema for creating a company."""
    name: str = Field(..., min_length=1, max_length=255)
    gaap_standard: GAAPStandard = GAAPStandard.INDIA_GAAP
    base_currency: str = Field("INR", min_length=3, max_length=3)
    with_default_chart: bool = False


class CompanyResponse(BaseModel):
    """Schema for company response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    gaap_standard: GAAPStandard
    base_currency: str
    created_at: datetime


# =============================================================================
# CHART OF ACCOUNTS SCHEMAS
# =============================================================================

class AccountBase(BaseModel):
    """Base schema for an account."""
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    account_type: AccountType
    parent_id: Optional[UUID] = None
    mapping_code: Optional[str] = Field(None, max_length=50)
    cash_flow_class: Optional[CashFlowClass] = None
    opening_balance: Decimal = Field(Decimal("0.00"), ge=0)
    opening_balance_side: BalanceSide = BalanceSide.DEBIT


class AccountCreate(AccountBase):
    """Schema for creating an account."""
    is_system: bool = False


class AccountUpdate(BaseModel):
    """Schema for updating an account. Omitted fields are left unchanged."""
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    mapping_code: Optional[str] = Field(None, max_length=50)
    cash_flow_class: Optional[CashFlowClass] = None
    opening_balance: Optional[Decimal] = Field(None, ge=0)
    opening_balance_side: Optional[BalanceSide] = None
    is_active: Optional[bool] = None


class AccountResponse(AccountBase):
    """Schema for account response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    level: int
    is_group: bool
    is_system: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AccountTree(BaseModel):
    """Nested chart of accounts node."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    account_type: AccountType
    level: int
    is_group: bool
    is_active: bool
    mapping_code: Optional[str] = None
    cash_flow_class: Optional[CashFlowClass] = None
    children: List["AccountTree"] = []


AccountTree.model_rebuild()


# =============================================================================
# FISCAL YEAR SCHEMAS
# =============================================================================

class FiscalYearCreate(BaseModel):
    """Schema for creating a fiscal year."""
    name: str = Field(..., min_length=1, max_length=50, examples=["FY 2024-25"])
    start_date: date
    end_date: date
    is_current: bool = False


class FiscalYearResponse(BaseModel):
    """Schema for fiscal year response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    name: str
    start_date: date
    end_date: date
    is_current: bool
    is_locked: bool
    locked_at: Optional[datetime] = None
    locked_by_id: Optional[UUID] = None
    created_at: datetime


# =============================================================================
# JOURNAL ENTRY SCHEMAS
# =============================================================================

class JournalEntryLineBase(BaseModel):
    """Base schema for journal entry line."""
    account_id: UUID
    description: Optional[str] = None
    debit_amount: Decimal = Decimal("0.00")
    credit_amount: Decimal = Decimal("0.00")
    party_type: Optional[PartyType] = None
    party_id: Optional[UUID] = None
    cost_center_id: Optional[UUID] = None

    @field_validator('debit_amount', 'credit_amount')
    @classmethod
    def validate_amounts(cls, v):
        if v < 0:
            raise ValueError('Amount cannot be negative')
        return v


class JournalEntryLineCreate(JournalEntryLineBase):
    """Schema for creating journal entry line."""
    pass


class JournalEntryLineResponse(JournalEntryLineBase):
    """Schema for journal entry line response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    journal_entry_id: UUID
    sort_order: int


class JournalEntryCreate(BaseModel):
    """
    Schema for creating a journal entry.

    Line count and balance are checked by the ledger so that the caller gets
    the specific ledger error rather than a generic validation failure.
    """
    fiscal_year_id: UUID
    entry_date: date
    entry_type: JournalEntryType = JournalEntryType.MANUAL
    narration: Optional[str] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    source_type: Optional[str] = Field(None, max_length=50)
    source_id: Optional[UUID] = None
    status: JournalEntryStatus = JournalEntryStatus.DRAFT
    lines: List[JournalEntryLineCreate]


class JournalEntryUpdate(BaseModel):
    """Schema for updating a draft journal entry. A supplied line set replaces all lines."""
    entry_date: Optional[date] = None
    narration: Optional[str] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    status: Optional[JournalEntryStatus] = None
    lines: Optional[List[JournalEntryLineCreate]] = None


class JournalEntryReverse(BaseModel):
    """Schema for reversing a posted journal entry."""
    reversal_date: Optional[date] = None
    narration: Optional[str] = None


class JournalEntryResponse(BaseModel):
    """Schema for journal entry response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    fiscal_year_id: UUID
    entry_number: str
    entry_date: date
    posting_date: Optional[date] = None
    entry_type: JournalEntryType
    narration: Optional[str] = None
    reference_number: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[UUID] = None
    status: JournalEntryStatus
    total_debit: Decimal
    total_credit: Decimal
    is_reversed: bool
    reversed_entry_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    created_at: datetime
    lines: List[JournalEntryLineResponse] = []


class JournalEntryListResponse(BaseModel):
    """Paginated journal entries."""
    items: List[JournalEntryResponse]
    total: int
    limit: int
    offset: int


# =============================================================================
# GL POSTING SCHEMAS (producing modules)
# =============================================================================

class GLPostingLine(BaseModel):
    """
    Line of an automatic posting.

    Either account_id or system_account_code identifies the account; system
    codes are resolved against the company's chart at posting time.
    """
    account_id: Optional[UUID] = None
    system_account_code: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    debit_amount: Decimal = Decimal("0.00")
    credit_amount: Decimal = Decimal("0.00")
    party_type: Optional[PartyType] = None
    party_id: Optional[UUID] = None
    cost_center_id: Optional[UUID] = None

    @field_validator('debit_amount', 'credit_amount')
    @classmethod
    def validate_amounts(cls, v):
        if v < 0:
            raise ValueError('Amount cannot be negative')
        return v

    @model_validator(mode="after")
    def validate_account_reference(self):
        if (self.account_id is None) == (self.system_account_code is None):
            raise ValueError('Provide exactly one of account_id or system_account_code')
        return self


class GLPostingRequest(BaseModel):
    """Request from a producing module to post its accounting impact."""
    source_type: str = Field(..., min_length=1, max_length=50, examples=["invoice"])
    source_id: UUID
    entry_date: date
    entry_type: JournalEntryType = JournalEntryType.AUTO_INVOICE
    narration: Optional[str] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    lines: List[GLPostingLine]

    @field_validator('entry_type')
    @classmethod
    def validate_entry_type(cls, v):
        if v == JournalEntryType.REVERSAL:
            raise ValueError('Reversals are made through the reverse endpoint')
        return v


class GLReverseRequest(BaseModel):
    """Request to undo a producing document's posting."""
    source_type: str = Field(..., min_length=1, max_length=50)
    source_id: UUID
    reversal_date: Optional[date] = None
    narration: Optional[str] = None


# =============================================================================
# TRIAL BALANCE SCHEMAS
# =============================================================================

class TrialBalanceItem(BaseModel):
    """Single account row of the trial balance."""
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    level: int
    is_group: bool
    opening_debit: Decimal = Decimal("0.00")
    opening_credit: Decimal = Decimal("0.00")
    period_debit: Decimal = Decimal("0.00")
    period_credit: Decimal = Decimal("0.00")
    closing_debit: Decimal = Decimal("0.00")
    closing_credit: Decimal = Decimal("0.00")


class TrialBalanceTotals(BaseModel):
    opening_debit: Decimal = Decimal("0.00")
    opening_credit: Decimal = Decimal("0.00")
    period_debit: Decimal = Decimal("0.00")
    period_credit: Decimal = Decimal("0.00")
    closing_debit: Decimal = Decimal("0.00")
    closing_credit: Decimal = Decimal("0.00")


class TrialBalanceReport(BaseModel):
    """Trial balance as of a date."""
    company_id: UUID
    as_of_date: date
    from_date: Optional[date] = None
    items: List[TrialBalanceItem]
    totals: TrialBalanceTotals
    is_balanced: bool
    was_stale: bool
    computed_at: datetime


class TrialBalanceStatus(BaseModel):
    """Staleness flag as seen by reporting consumers."""
    company_id: UUID
    is_stale: bool
    marked_stale_at: Optional[datetime] = None
    computed_at: Optional[datetime] = None


class AccountLedgerLine(BaseModel):
    """Posted line with running balance."""
    entry_id: UUID
    entry_number: str
    entry_date: date
    narration: Optional[str] = None
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal
    balance_side: str  # "Dr" or "Cr"


class AccountLedgerReport(BaseModel):
    """General ledger for one account."""
    account_id: UUID
    account_code: str
    account_name: str
    from_date: Optional[date] = None
    to_date: date
    opening_balance: Decimal
    opening_side: str
    lines: List[AccountLedgerLine]
    closing_balance: Decimal
    closing_side: str


class TrialBalanceSummary(BaseModel):
    """Closing totals per account type and the accounting equation check."""
    as_of_date: date
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    equation_balanced: bool
