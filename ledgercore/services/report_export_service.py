"""
LedgerCore - Financial Report Export Service

Spreadsheet export of stored statement runs. The workbook is rebuilt from
the run's generated data, so an export always shows exactly what was
generated at the time.
"""

import io
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.models.company import Company
from ledgercore.models.reporting import StatementRun, StatementType
from ledgercore.services.financial_statement_service import FinancialStatementService
from ledgercore.utils.error_handling import CompanyNotFoundError

logger = logging.getLogger(__name__)

STATEMENT_TITLES = {
    StatementType.BALANCE_SHEET: "Balance Sheet",
    StatementType.PROFIT_LOSS: "Statement of Profit and Loss",
    StatementType.CASH_FLOW: "Cash Flow Statement",
}

CASH_FLOW_SUMMARY_LABELS = [
    ("net_cash_from_operating", "Net Cash from Operating Activities"),
    ("net_cash_from_investing", "Net Cash from Investing Activities"),
    ("net_cash_from_financing", "Net Cash from Financing Activities"),
    ("net_increase", "Net Increase/(Decrease) in Cash"),
    ("opening_cash", "Opening Cash"),
    ("closing_cash", "Closing Cash"),
    ("observed_closing_cash", "Cash per Cash Accounts"),
]


class FinancialReportExportService:
    """Service for exporting generated statements."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.statements = FinancialStatementService(db)

    async def export_run(self, ctx: LedgerContext, run_id: uuid.UUID) -> Tuple[bytes, str]:
        """Render a stored statement run as an .xlsx workbook. Returns (content, filename)."""
        run = await self.statements.get_run(ctx, run_id)
        company = await self.db.get(Company, ctx.company_id)
        if company is None:
            raise CompanyNotFoundError(ctx.company_id)

        content = self._generate_statement_excel(company, run)
        filename = f"{run.statement_type.value}_{run.as_of_date.strftime('%Y%m%d')}.xlsx"
        logger.info(f"Exported statement run {run.id} for company {ctx.company_id}")
        return content, filename

    def _generate_statement_excel(self, company: Company, run: StatementRun) -> bytes:
        data: Dict[str, Any] = run.generated_data

        wb = Workbook()
        ws = wb.active
        ws.title = STATEMENT_TITLES[run.statement_type][:31]

        # Styles
        title_font = Font(bold=True, size=14)
        header_fill = PatternFill(start_color="2D3748", end_color="2D3748", fill_type="solid")
        header_font_white = Font(bold=True, size=10, color="FFFFFF")
        bold_font = Font(bold=True, size=11)
        currency_format = '#,##0.00'

        # Title
        ws['A1'] = company.name
        ws['A1'].font = title_font
        ws['A2'] = STATEMENT_TITLES[run.statement_type]
        ws['A3'] = self._period_caption(run)

        row = 5
        ws[f'A{row}'] = "Code"
        ws[f'B{row}'] = "Particulars"
        ws[f'C{row}'] = f"Amount ({company.base_currency})"
        for column in ("A", "B", "C"):
            ws[f'{column}{row}'].fill = header_fill
            ws[f'{column}{row}'].font = header_font_white
        row += 1

        for line in self._flatten(data.get("statement", [])):
            ws[f'A{row}'] = line["code"]
            ws[f'B{row}'] = line["name"]
            ws[f'B{row}'].alignment = Alignment(indent=line.get("indent_level", 0))
            if not line.get("is_header"):
                ws[f'C{row}'] = float(Decimal(str(line["amount"])))
                ws[f'C{row}'].number_format = currency_format
            if line.get("is_bold") or line.get("is_total"):
                ws[f'B{row}'].font = bold_font
                ws[f'C{row}'].font = bold_font
            row += 1

        summary = data.get("summary")
        if summary:
            row += 1
            ws[f'B{row}'] = "Summary"
            ws[f'B{row}'].font = bold_font
            row += 1
            for key, label in CASH_FLOW_SUMMARY_LABELS:
                ws[f'B{row}'] = label
                ws[f'C{row}'] = float(Decimal(str(summary[key])))
                ws[f'C{row}'].number_format = currency_format
                row += 1

        if "net_profit" in data:
            row += 1
            ws[f'B{row}'] = "Net Profit"
            ws[f'B{row}'].font = bold_font
            ws[f'C{row}'] = float(Decimal(str(data["net_profit"])))
            ws[f'C{row}'].number_format = currency_format
            ws[f'C{row}'].font = bold_font

        # Adjust column widths
        ws.column_dimensions['A'].width = 26
        ws.column_dimensions['B'].width = 50
        ws.column_dimensions['C'].width = 20

        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        return buffer.read()

    @staticmethod
    def _period_caption(run: StatementRun) -> str:
        if run.from_date and run.to_date:
            return f"For the period {_long_date(run.from_date)} to {_long_date(run.to_date)}"
        return f"As of {_long_date(run.as_of_date)}"

    def _flatten(self, lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Statement lines in display order, each followed by its sub-schedule."""
        flat = []
        for line in lines:
            flat.append(line)
            flat.extend(self._flatten(line.get("children") or []))
        return flat


def _long_date(value: date) -> str:
    return value.strftime('%B %d, %Y')
