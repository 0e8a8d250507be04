"""
LedgerCore - Routers Package

FastAPI route handlers.

Routers:
- accounting: Companies, Chart of Accounts, fiscal years, journal entries,
  GL posting and trial balance
- financial_statements: Statement generation, history and export
"""

from ledgercore.routers import accounting, financial_statements

__all__ = ["accounting", "financial_statements"]
