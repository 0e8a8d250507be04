"""
LedgerCore - Chart of Accounts & General Ledger Models

Double-entry ledger tables:
- Chart of Accounts (hierarchical, leaf accounts take postings)
- Fiscal years with one-way locking
- Journal entries and their lines
- Per fiscal year entry number counter
- Trial balance staleness flag

Every table is scoped by company_id.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid,
    Enum as SQLEnum, UniqueConstraint, Index, CheckConstraint, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgercore.models.base import BaseModel, AuditMixin


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """Main account types."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class BalanceSide(str, Enum):
    """Side an amount sits on."""
    DEBIT = "debit"
    CREDIT = "credit"


class CashFlowClass(str, Enum):
    """
    Cash flow bucket for balance sheet accounts.

    Drives the indirect-method cash flow statement. Income and expense
    accounts carry no class; they reach the statement through net profit.
    """
    CASH = "cash"
    RECEIVABLE = "receivable"
    INVENTORY = "inventory"
    OTHER_CURRENT_ASSET = "other_current_asset"
    FIXED_ASSET = "fixed_asset"
    ACCUMULATED_DEPRECIATION = "accumulated_depreciation"
    INVESTMENT = "investment"
    PAYABLE = "payable"
    OTHER_CURRENT_LIABILITY = "other_current_liability"
    BORROWING = "borrowing"
    EQUITY = "equity"


# Classes each account type may carry
CASH_FLOW_CLASSES_BY_TYPE = {
    AccountType.ASSET: {
        CashFlowClass.CASH,
        CashFlowClass.RECEIVABLE,
        CashFlowClass.INVENTORY,
        CashFlowClass.OTHER_CURRENT_ASSET,
        CashFlowClass.FIXED_ASSET,
        CashFlowClass.ACCUMULATED_DEPRECIATION,
        CashFlowClass.INVESTMENT,
    },
    AccountType.LIABILITY: {
        CashFlowClass.PAYABLE,
        CashFlowClass.OTHER_CURRENT_LIABILITY,
        CashFlowClass.BORROWING,
    },
    AccountType.EQUITY: {CashFlowClass.EQUITY},
    AccountType.INCOME: set(),
    AccountType.EXPENSE: set(),
}

# Types whose natural balance is a debit
DEBIT_NATURE_TYPES = {AccountType.ASSET, AccountType.EXPENSE}


class JournalEntryStatus(str, Enum):
    """Journal entry lifecycle; draft -> posted is one way."""
    DRAFT = "draft"
    POSTED = "posted"


class JournalEntryType(str, Enum):
    """Where a journal entry came from."""
    MANUAL = "manual"
    AUTO_INVOICE = "auto_invoice"
    AUTO_PAYMENT = "auto_payment"
    AUTO_EXPENSE = "auto_expense"
    RECURRING = "recurring"
    REVERSAL = "reversal"
    BANK_IMPORT = "bank_import"
    OPENING = "opening"


class PartyType(str, Enum):
    """Sub-ledger dimension on a journal line."""
    CUSTOMER = "customer"
    VENDOR = "vendor"
    EMPLOYEE = "employee"


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class Account(BaseModel, AuditMixin):
    """
    Chart of Accounts entry.

    Group accounts (is_group=True) only aggregate their children and never
    receive postings. Leaf accounts carry the statement mapping code, either
    their own or one inherited from the nearest mapped ancestor.
    """

    __tablename__ = "accounts"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Account Identification
    code: Mapped[str] = mapped_column(
        String(20), nullable=False,
        comment="Unique account code within the company (e.g., 1000, 1241)",
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    account_type: Mapped[AccountType] = mapped_column(
        SQLEnum(AccountType), nullable=False,
    )
    cash_flow_class: Mapped[Optional[CashFlowClass]] = mapped_column(
        SQLEnum(CashFlowClass), nullable=True,
    )
    mapping_code: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True,
        comment="Schedule mapping line item this account rolls into",
    )

    # Hierarchy
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=True,
    )
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_group: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
        comment="True once the account has children; group accounts take no postings",
    )

    # Opening Balance
    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    opening_balance_side: Mapped[BalanceSide] = mapped_column(
        SQLEnum(BalanceSide), default=BalanceSide.DEBIT, nullable=False,
    )

    # System Flags
    is_system: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
        comment="System accounts cannot be deleted",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint('company_id', 'code', name='uq_accounts_company_code'),
        Index('ix_accounts_company_type', 'company_id', 'account_type'),
        Index('ix_accounts_company_parent', 'company_id', 'parent_id'),
        CheckConstraint('opening_balance >= 0', name='opening_balance_non_negative'),
    )

    @property
    def is_debit_nature(self) -> bool:
        return self.account_type in DEBIT_NATURE_TYPES

    @property
    def signed_opening_balance(self) -> Decimal:
        """Opening balance as debit minus credit."""
        amount = self.opening_balance or Decimal("0.00")
        return amount if self.opening_balance_side == BalanceSide.DEBIT else -amount

    def __repr__(self) -> str:
        return f"<Account({self.code}: {self.name})>"


# =============================================================================
# FISCAL YEARS
# =============================================================================

class FiscalYear(BaseModel, AuditMixin):
    """
    Fiscal year definition.

    Locking is one way: once is_locked is set, no entry dated inside the
    year may be created, edited, posted or deleted.
    """

    __tablename__ = "fiscal_years"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)  # e.g., "FY 2024-25"
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (
        UniqueConstraint('company_id', 'name', name='uq_fiscal_years_company_name'),
        CheckConstraint('start_date < end_date', name='fiscal_year_range'),
    )

    def contains(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    @property
    def short_name(self) -> str:
        """Name as used inside entry numbers ("FY 2024-25" -> "2024-25")."""
        return self.name[3:] if self.name.startswith("FY ") else self.name

    def __repr__(self) -> str:
        return f"<FiscalYear({self.name})>"


class JournalSequence(BaseModel):
    """
    Entry number counter per company and fiscal year.

    Incremented with a single UPDATE ... RETURNING inside the transaction
    that inserts the entry, so concurrent creators serialise on the row.
    """

    __tablename__ = "journal_sequences"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    fiscal_year_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("fiscal_years.id", ondelete="CASCADE"),
        nullable=False,
    )
    last_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint('company_id', 'fiscal_year_id', name='uq_journal_sequences_company_year'),
    )


# =============================================================================
# JOURNAL ENTRIES
# =============================================================================

# Enum columns hold member names
LIVE_SOURCE_ENTRY_CONDITION = (
    "source_id IS NOT NULL AND status = 'POSTED' "
    "AND NOT is_reversed AND entry_type <> 'REVERSAL'"
)


class JournalEntry(BaseModel, AuditMixin):
    """
    Journal entry header.

    Posted entries are never edited in place; they are corrected by a
    reversal entry, and the two are linked through reversed_entry_id.
    """

    __tablename__ = "journal_entries"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fiscal_year_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("fiscal_years.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Entry Identification
    entry_number: Mapped[str] = mapped_column(
        String(50), nullable=False,
        comment="e.g. JV/2024-25/0001",
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    posting_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    entry_type: Mapped[JournalEntryType] = mapped_column(
        SQLEnum(JournalEntryType),
        default=JournalEntryType.MANUAL,
        nullable=False,
    )

    narration: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Provenance (producing document)
    source_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    source_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    # Totals
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        SQLEnum(JournalEntryStatus),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    # Reversal link (set on both the original and the reversal)
    is_reversed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reversed_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("journal_entries.id", ondelete="SET NULL"),
        nullable=True,
    )

    lines: Mapped[List["JournalEntryLine"]] = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.sort_order",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint('company_id', 'entry_number', name='uq_journal_entries_company_number'),
        Index('ix_journal_entries_company_date', 'company_id', 'entry_date'),
        Index('ix_journal_entries_source', 'company_id', 'source_type', 'source_id'),
        # At most one live posted entry per source document
        Index(
            'uq_journal_entries_live_source', 'company_id', 'source_type', 'source_id',
            unique=True,
            postgresql_where=text(LIVE_SOURCE_ENTRY_CONDITION),
            sqlite_where=text(LIVE_SOURCE_ENTRY_CONDITION),
        ),
    )

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    def __repr__(self) -> str:
        return f"<JournalEntry({self.entry_number})>"


class JournalEntryLine(BaseModel):
    """
    Journal entry line.

    Both amount columns are always present; normally one of them is zero.
    """

    __tablename__ = "journal_entry_lines"

    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )

    # Dimensions
    party_type: Mapped[Optional[PartyType]] = mapped_column(SQLEnum(PartyType), nullable=True)
    party_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    cost_center_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    journal_entry: Mapped["JournalEntry"] = relationship(
        "JournalEntry",
        back_populates="lines",
    )

    __table_args__ = (
        UniqueConstraint('journal_entry_id', 'sort_order', name='uq_journal_entry_lines_entry_order'),
        CheckConstraint(
            'debit_amount >= 0 AND credit_amount >= 0',
            name='line_amounts_non_negative',
        ),
    )

    def __repr__(self) -> str:
        return f"<JournalEntryLine(Dr:{self.debit_amount} Cr:{self.credit_amount})>"


# =============================================================================
# TRIAL BALANCE CACHE
# =============================================================================

class TrialBalanceCache(BaseModel):
    """
    Dirty flag for a company's trial balance.

    No balances are stored here. Ledger mutations set is_stale; an explicit
    trial balance read clears it.
    """

    __tablename__ = "trial_balance_cache"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    is_stale: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    marked_stale_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    computed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
