"""
LedgerCore - Financial Statement Schemas

Statement line trees, generation requests and results, and run history.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ledgercore.models.reporting import StatementType


class StatementLine(BaseModel):
    """One presentation line of a generated statement."""
    code: str
    name: str
    amount: Decimal = Decimal("0.00")
    indent_level: int = 0
    is_bold: bool = False
    is_total: bool = False
    is_header: bool = False
    has_sub_schedule: bool = False
    # True when no account feeds this line and the amount is a zero default
    zero_filled: bool = False
    children: List["StatementLine"] = []


StatementLine.model_rebuild()


class UnmappedAccount(BaseModel):
    """Account with a balance that no statement line picks up."""
    account_id: UUID
    code: str
    name: str
    balance: Decimal


# =============================================================================
# REQUESTS
# =============================================================================

class BalanceSheetRequest(BaseModel):
    fiscal_year_id: Optional[UUID] = None
    as_of_date: Optional[date] = None
    strict: Optional[bool] = None


class PeriodStatementRequest(BaseModel):
    fiscal_year_id: Optional[UUID] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    strict: Optional[bool] = None


# =============================================================================
# RESULTS
# =============================================================================

class BalanceSheetResult(BaseModel):
    """Generated balance sheet."""
    run_id: Optional[UUID] = None
    fiscal_year_id: Optional[UUID] = None
    as_of_date: date
    statement: List[StatementLine]
    net_profit: Decimal
    total_assets: Decimal
    total_equity_and_liabilities: Decimal
    is_balanced: bool
    unmapped_accounts: List[UnmappedAccount] = []


class ProfitLossResult(BaseModel):
    """Generated statement of profit and loss."""
    run_id: Optional[UUID] = None
    fiscal_year_id: Optional[UUID] = None
    from_date: date
    to_date: date
    statement: List[StatementLine]
    net_profit: Decimal
    unmapped_accounts: List[UnmappedAccount] = []


class CashFlowSummary(BaseModel):
    net_cash_from_operating: Decimal
    net_cash_from_investing: Decimal
    net_cash_from_financing: Decimal
    net_increase: Decimal
    opening_cash: Decimal
    closing_cash: Decimal
    # Direct aggregate of cash accounts at to_date; reported, not asserted
    observed_closing_cash: Decimal


class CashFlowResult(BaseModel):
    """Generated cash flow statement (indirect method)."""
    run_id: Optional[UUID] = None
    fiscal_year_id: Optional[UUID] = None
    from_date: date
    to_date: date
    statement: List[StatementLine]
    net_profit: Decimal
    summary: CashFlowSummary
    # Balance sheet accounts without a cash flow class
    unclassified_accounts: List[UnmappedAccount] = []


# =============================================================================
# HISTORY
# =============================================================================

class StatementRunResponse(BaseModel):
    """Statement run without its payload."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    fiscal_year_id: Optional[UUID] = None
    statement_type: StatementType
    as_of_date: date
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    generated_by_id: Optional[UUID] = None
    generated_at: datetime


class StatementRunDetail(StatementRunResponse):
    """Statement run including the generated statement."""
    generated_data: Dict[str, Any]
