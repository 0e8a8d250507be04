"""
LedgerCore - Services Package

Business logic services.
"""

from ledgercore.services.company_service import CompanyService
from ledgercore.services.chart_of_accounts_service import ChartOfAccountsService
from ledgercore.services.fiscal_year_service import FiscalYearService
from ledgercore.services.journal_service import JournalService
from ledgercore.services.gl_posting_service import GLPostingService
from ledgercore.services.trial_balance_service import TrialBalanceService
from ledgercore.services.financial_statement_service import FinancialStatementService
from ledgercore.services.report_export_service import FinancialReportExportService

__all__ = [
    "CompanyService",
    "ChartOfAccountsService",
    "FiscalYearService",
    "JournalService",
    "GLPostingService",
    "TrialBalanceService",
    "FinancialStatementService",
    "FinancialReportExportService",
]
