"""
LedgerCore - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from ledgercore.models.base import BaseModel, TimestampMixin, AuditMixin
from ledgercore.models.company import Company, GAAPStandard
from ledgercore.models.accounting import (
    Account,
    AccountType,
    BalanceSide,
    CashFlowClass,
    FiscalYear,
    JournalSequence,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalEntryType,
    PartyType,
    TrialBalanceCache,
)
from ledgercore.models.reporting import ScheduleMapping, StatementRun, StatementType

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    "Company",
    "GAAPStandard",
    "Account",
    "AccountType",
    "BalanceSide",
    "CashFlowClass",
    "FiscalYear",
    "JournalSequence",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "JournalEntryType",
    "PartyType",
    "TrialBalanceCache",
    "ScheduleMapping",
    "StatementRun",
    "StatementType",
]
