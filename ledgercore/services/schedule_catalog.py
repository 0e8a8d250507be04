"""
LedgerCore - Schedule Mapping Catalog

Regulatory statement layouts and the rollup that turns per-line amounts
into a presentation tree.

Item lines take the amount of the accounts mapped to them, header lines are
captions, and total lines are the signed sum of every row whose
rollup_parent_code names them. Totals may feed further totals.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.models.company import GAAPStandard
from ledgercore.models.reporting import ScheduleMapping, StatementType
from ledgercore.schemas.reporting import StatementLine
from ledgercore.utils.error_handling import ConfigurationException
from ledgercore.utils.money import ZERO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogLine:
    """Catalog row definition; mirrors the ScheduleMapping columns."""
    line_item_code: str
    line_item_name: str
    statement_type: StatementType
    display_order: int
    indent_level: int = 0
    is_bold: bool = False
    is_header: bool = False
    is_total: bool = False
    has_sub_schedule: bool = False
    rollup_parent_code: Optional[str] = None
    rollup_sign: int = 1


# Codes the statement generator relies on
RESERVES_LINE = "BS_EQUITY_RESERVES"
TOTAL_ASSETS_LINE = "BS_ASSETS_TOTAL"
TOTAL_EQUITY_LIABILITIES_LINE = "BS_EQUITY_LIAB_TOTAL"
PROFIT_AFTER_TAX_LINE = "PL_PAT"

BS = StatementType.BALANCE_SHEET
PL = StatementType.PROFIT_LOSS
CF = StatementType.CASH_FLOW


def _header(code, name, order, statement, indent=0):
    return CatalogLine(code, name, statement, order, indent, is_bold=True, is_header=True)


def _item(code, name, order, statement, parent, indent=2, sub_schedule=False, sign=1, bold=False):
    return CatalogLine(
        code, name, statement, order, indent,
        is_bold=bold,
        has_sub_schedule=sub_schedule,
        rollup_parent_code=parent,
        rollup_sign=sign,
    )


def _total(code, name, order, statement, parent=None, indent=1, sign=1):
    return CatalogLine(
        code, name, statement, order, indent,
        is_bold=True,
        is_total=True,
        rollup_parent_code=parent,
        rollup_sign=sign,
    )


# Schedule III (Division I) layout
INDIA_GAAP_CATALOG: List[CatalogLine] = [
    # Balance Sheet - assets
    _header("BS_ASSETS", "ASSETS", 1, BS),
    _header("BS_ASSET_NCA", "Non-Current Assets", 2, BS, indent=1),
    _item("BS_ASSET_NCA_PPE", "Property, Plant and Equipment", 3, BS, "BS_ASSET_NCA_TOTAL", sub_schedule=True),
    _item("BS_ASSET_NCA_CWIP", "Capital Work-in-Progress", 4, BS, "BS_ASSET_NCA_TOTAL"),
    _item("BS_ASSET_NCA_INTANGIBLE", "Intangible Assets", 5, BS, "BS_ASSET_NCA_TOTAL", sub_schedule=True),
    _item("BS_ASSET_NCA_INVESTMENTS", "Non-Current Investments", 6, BS, "BS_ASSET_NCA_TOTAL", sub_schedule=True),
    _item("BS_ASSET_NCA_DTA", "Deferred Tax Assets (Net)", 7, BS, "BS_ASSET_NCA_TOTAL"),
    _item("BS_ASSET_NCA_LOANS", "Long-Term Loans and Advances", 8, BS, "BS_ASSET_NCA_TOTAL", sub_schedule=True),
    _item("BS_ASSET_NCA_OTHER", "Other Non-Current Assets", 9, BS, "BS_ASSET_NCA_TOTAL"),
    _total("BS_ASSET_NCA_TOTAL", "Total Non-Current Assets", 10, BS, parent=TOTAL_ASSETS_LINE),
    _header("BS_ASSET_CA", "Current Assets", 11, BS, indent=1),
    _item("BS_ASSET_CA_INVENTORIES", "Inventories", 12, BS, "BS_ASSET_CA_TOTAL", sub_schedule=True),
    _item("BS_ASSET_CA_INVESTMENTS", "Current Investments", 13, BS, "BS_ASSET_CA_TOTAL"),
    _item("BS_ASSET_CA_RECEIVABLES", "Trade Receivables", 14, BS, "BS_ASSET_CA_TOTAL", sub_schedule=True),
    _item("BS_ASSET_CA_CASH", "Cash and Cash Equivalents", 15, BS, "BS_ASSET_CA_TOTAL"),
    _item("BS_ASSET_CA_LOANS", "Short-Term Loans and Advances", 16, BS, "BS_ASSET_CA_TOTAL"),
    _item("BS_ASSET_CA_OTHER", "Other Current Assets", 17, BS, "BS_ASSET_CA_TOTAL"),
    _total("BS_ASSET_CA_TOTAL", "Total Current Assets", 18, BS, parent=TOTAL_ASSETS_LINE),
    _total(TOTAL_ASSETS_LINE, "TOTAL ASSETS", 19, BS, indent=0),

    # Balance Sheet - equity and liabilities
    _header("BS_EQUITY_LIAB", "EQUITY AND LIABILITIES", 20, BS),
    _header("BS_EQUITY", "Shareholders' Funds", 21, BS, indent=1),
    _item("BS_EQUITY_SHARE_CAPITAL", "Share Capital", 22, BS, "BS_EQUITY_TOTAL", sub_schedule=True),
    _item(RESERVES_LINE, "Reserves and Surplus", 23, BS, "BS_EQUITY_TOTAL", sub_schedule=True),
    _item("BS_EQUITY_OTHER", "Other Equity", 24, BS, "BS_EQUITY_TOTAL"),
    _total("BS_EQUITY_TOTAL", "Total Shareholders' Funds", 25, BS, parent=TOTAL_EQUITY_LIABILITIES_LINE),
    _header("BS_LIAB_NCL", "Non-Current Liabilities", 26, BS, indent=1),
    _item("BS_LIAB_NCL_BORROWINGS", "Long-Term Borrowings", 27, BS, "BS_LIAB_NCL_TOTAL", sub_schedule=True),
    _item("BS_LIAB_NCL_DTL", "Deferred Tax Liabilities (Net)", 28, BS, "BS_LIAB_NCL_TOTAL"),
    _item("BS_LIAB_NCL_PROVISIONS", "Long-Term Provisions", 29, BS, "BS_LIAB_NCL_TOTAL"),
    _item("BS_LIAB_NCL_OTHER", "Other Non-Current Liabilities", 30, BS, "BS_LIAB_NCL_TOTAL"),
    _total("BS_LIAB_NCL_TOTAL", "Total Non-Current Liabilities", 31, BS, parent=TOTAL_EQUITY_LIABILITIES_LINE),
    _header("BS_LIAB_CL", "Current Liabilities", 32, BS, indent=1),
    _item("BS_LIAB_CL_BORROWINGS", "Short-Term Borrowings", 33, BS, "BS_LIAB_CL_TOTAL"),
    _item("BS_LIAB_CL_PAYABLES", "Trade Payables", 34, BS, "BS_LIAB_CL_TOTAL", sub_schedule=True),
    _item("BS_LIAB_CL_OTHER", "Other Current Liabilities", 35, BS, "BS_LIAB_CL_TOTAL"),
    _item("BS_LIAB_CL_PROVISIONS", "Short-Term Provisions", 36, BS, "BS_LIAB_CL_TOTAL"),
    _total("BS_LIAB_CL_TOTAL", "Total Current Liabilities", 37, BS, parent=TOTAL_EQUITY_LIABILITIES_LINE),
    _total(TOTAL_EQUITY_LIABILITIES_LINE, "TOTAL EQUITY AND LIABILITIES", 38, BS, indent=0),

    # Statement of Profit and Loss
    _item("PL_REVENUE_OPERATIONS", "Revenue from Operations", 1, PL, "PL_TOTAL_INCOME", indent=0, sub_schedule=True),
    _item("PL_OTHER_INCOME", "Other Income", 2, PL, "PL_TOTAL_INCOME", indent=0),
    _total("PL_TOTAL_INCOME", "Total Income", 3, PL, parent="PL_PBT", indent=0),
    _header("PL_EXPENSES", "EXPENSES", 4, PL),
    _item("PL_COST_MATERIALS", "Cost of Materials Consumed", 5, PL, "PL_TOTAL_EXPENSES", indent=1),
    _item("PL_PURCHASES", "Purchases of Stock-in-Trade", 6, PL, "PL_TOTAL_EXPENSES", indent=1),
    _item("PL_INVENTORY_CHANGE", "Changes in Inventories", 7, PL, "PL_TOTAL_EXPENSES", indent=1),
    _item("PL_EMPLOYEE_BENEFITS", "Employee Benefits Expense", 8, PL, "PL_TOTAL_EXPENSES", indent=1),
    _item("PL_FINANCE_COSTS", "Finance Costs", 9, PL, "PL_TOTAL_EXPENSES", indent=1),
    _item("PL_DEPRECIATION", "Depreciation and Amortisation Expense", 10, PL, "PL_TOTAL_EXPENSES", indent=1),
    _item("PL_OTHER_EXPENSES", "Other Expenses", 11, PL, "PL_TOTAL_EXPENSES", indent=1, sub_schedule=True),
    _total("PL_TOTAL_EXPENSES", "Total Expenses", 12, PL, parent="PL_PBT", indent=0, sign=-1),
    _total("PL_PBT", "Profit Before Tax", 13, PL, parent=PROFIT_AFTER_TAX_LINE, indent=0),
    _item("PL_TAX_EXPENSE", "Tax Expense", 14, PL, PROFIT_AFTER_TAX_LINE, indent=1, sign=-1),
    _total(PROFIT_AFTER_TAX_LINE, "Profit for the Period", 15, PL, indent=0),
]

CATALOGS: Dict[GAAPStandard, List[CatalogLine]] = {
    GAAPStandard.INDIA_GAAP: INDIA_GAAP_CATALOG,
}

# Indirect-method cash flow layout. Item amounts are supplied already signed
# as cash effects, so every row contributes with +1.
CASH_FLOW_LAYOUT: List[CatalogLine] = [
    _header("CFO_HEADER", "A. Cash Flow from Operating Activities", 1, CF),
    _item("CFO_NET_PROFIT", "Net Profit", 2, CF, "CFO_TOTAL", indent=1),
    _header("CFO_ADJ_HEADER", "Adjustments for:", 3, CF, indent=1),
    _item("CFO_DEPRECIATION", "Depreciation and Amortisation", 4, CF, "CFO_TOTAL"),
    _header("CFO_WC_HEADER", "Working Capital Changes:", 5, CF, indent=1),
    _item("CFO_RECEIVABLES", "(Increase)/Decrease in Trade Receivables", 6, CF, "CFO_TOTAL"),
    _item("CFO_INVENTORY", "(Increase)/Decrease in Inventories", 7, CF, "CFO_TOTAL"),
    _item("CFO_OTHER_CA", "(Increase)/Decrease in Other Current Assets", 8, CF, "CFO_TOTAL"),
    _item("CFO_PAYABLES", "Increase/(Decrease) in Trade Payables", 9, CF, "CFO_TOTAL"),
    _item("CFO_OTHER_CL", "Increase/(Decrease) in Other Current Liabilities", 10, CF, "CFO_TOTAL"),
    _total("CFO_TOTAL", "Net Cash from Operating Activities (A)", 11, CF, parent="CF_NET_INCREASE", indent=0),
    _header("CFI_HEADER", "B. Cash Flow from Investing Activities", 12, CF),
    _item("CFI_FIXED_ASSETS", "Purchase of Property, Plant & Equipment", 13, CF, "CFI_TOTAL", indent=1),
    _item("CFI_INVESTMENTS", "(Purchase)/Sale of Investments", 14, CF, "CFI_TOTAL", indent=1),
    _total("CFI_TOTAL", "Net Cash from Investing Activities (B)", 15, CF, parent="CF_NET_INCREASE", indent=0),
    _header("CFF_HEADER", "C. Cash Flow from Financing Activities", 16, CF),
    _item("CFF_BORROWINGS", "Proceeds/(Repayment) of Borrowings", 17, CF, "CFF_TOTAL", indent=1),
    _item("CFF_EQUITY", "Proceeds from Issue of Equity", 18, CF, "CFF_TOTAL", indent=1),
    _total("CFF_TOTAL", "Net Cash from Financing Activities (C)", 19, CF, parent="CF_NET_INCREASE", indent=0),
    _total("CF_NET_INCREASE", "Net Increase/(Decrease) in Cash (A+B+C)", 20, CF, parent="CF_CLOSING", indent=0),
    _item("CF_OPENING", "Cash and Cash Equivalents at Beginning", 21, CF, "CF_CLOSING", indent=0),
    _total("CF_CLOSING", "Cash and Cash Equivalents at End", 22, CF, indent=0),
]


# =============================================================================
# CATALOG PERSISTENCE
# =============================================================================

async def seed_schedule_mappings(
    db: AsyncSession,
    gaap_standard: GAAPStandard = GAAPStandard.INDIA_GAAP,
) -> int:
    """
    Insert the catalog rows of a standard that are not yet present.

    Safe to call repeatedly. Returns the number of rows inserted; the caller
    owns the transaction.
    """
    catalog = CATALOGS.get(gaap_standard)
    if not catalog:
        return 0

    result = await db.execute(
        select(ScheduleMapping.line_item_code).where(ScheduleMapping.gaap_standard == gaap_standard)
    )
    existing = set(result.scalars().all())

    inserted = 0
    for line in catalog:
        if line.line_item_code in existing:
            continue
        db.add(ScheduleMapping(
            gaap_standard=gaap_standard,
            line_item_code=line.line_item_code,
            line_item_name=line.line_item_name,
            statement_type=line.statement_type,
            display_order=line.display_order,
            indent_level=line.indent_level,
            is_bold=line.is_bold,
            is_header=line.is_header,
            is_total=line.is_total,
            has_sub_schedule=line.has_sub_schedule,
            rollup_parent_code=line.rollup_parent_code,
            rollup_sign=line.rollup_sign,
        ))
        inserted += 1

    if inserted:
        await db.flush()
        logger.info(f"Seeded {inserted} schedule mapping rows for {gaap_standard.value}")
    return inserted


async def load_catalog(
    db: AsyncSession,
    gaap_standard: GAAPStandard,
    statement_type: StatementType,
) -> List[ScheduleMapping]:
    """
    Catalog rows for a statement, in display order.

    A standard without seeded rows falls back to INDIA_GAAP, which is seeded
    on first use.
    """
    async def fetch(standard: GAAPStandard) -> List[ScheduleMapping]:
        result = await db.execute(
            select(ScheduleMapping)
            .where(
                and_(
                    ScheduleMapping.gaap_standard == standard,
                    ScheduleMapping.statement_type == statement_type,
                )
            )
            .order_by(ScheduleMapping.display_order)
        )
        return list(result.scalars().all())

    rows = await fetch(gaap_standard)
    if rows:
        return rows

    if gaap_standard != GAAPStandard.INDIA_GAAP:
        logger.warning(
            f"No {statement_type.value} catalog for {gaap_standard.value}; using INDIA_GAAP"
        )
    rows = await fetch(GAAPStandard.INDIA_GAAP)
    if not rows:
        await seed_schedule_mappings(db, GAAPStandard.INDIA_GAAP)
        rows = await fetch(GAAPStandard.INDIA_GAAP)
    return rows


# =============================================================================
# ROLLUP
# =============================================================================

def item_codes(rows: Sequence) -> set:
    """Codes of the lines that collect account balances."""
    return {row.line_item_code for row in rows if not row.is_header and not row.is_total}


def build_statement_lines(
    rows: Sequence,
    amounts: Mapping[str, Decimal],
    breakdown: Optional[Mapping[str, List[StatementLine]]] = None,
) -> List[StatementLine]:
    """
    Assemble statement lines from catalog rows and per-code amounts.

    rows are ScheduleMapping or CatalogLine objects. An item line missing
    from amounts is shown as zero and flagged zero_filled.
    """
    rows = sorted(rows, key=lambda row: row.display_order)
    breakdown = breakdown or {}

    contributors: Dict[str, list] = {}
    for row in rows:
        if row.rollup_parent_code:
            contributors.setdefault(row.rollup_parent_code, []).append(row)

    values: Dict[str, Decimal] = {}
    visiting = set()

    def value_of(row) -> Decimal:
        code = row.line_item_code
        if code in values:
            return values[code]
        if code in visiting:
            raise ConfigurationException(
                message=f"Statement rollup cycle through line {code}",
                details={"line_item_code": code},
            )
        visiting.add(code)

        if row.is_header:
            value = ZERO
        elif row.is_total:
            value = ZERO
            for child in contributors.get(code, []):
                value += child.rollup_sign * value_of(child)
        else:
            value = amounts.get(code, ZERO)

        visiting.discard(code)
        values[code] = value
        return value

    lines = []
    for row in rows:
        is_item = not row.is_header and not row.is_total
        lines.append(StatementLine(
            code=row.line_item_code,
            name=row.line_item_name,
            amount=value_of(row),
            indent_level=row.indent_level,
            is_bold=row.is_bold,
            is_total=row.is_total,
            is_header=row.is_header,
            has_sub_schedule=row.has_sub_schedule,
            zero_filled=is_item and row.line_item_code not in amounts,
            children=list(breakdown.get(row.line_item_code, [])) if row.has_sub_schedule else [],
        ))
    return lines


def find_line(lines: Sequence[StatementLine], code: str) -> Optional[StatementLine]:
    for line in lines:
        if line.code == code:
            return line
    return None
