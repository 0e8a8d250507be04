"""
LedgerCore - Financial Statement Tests

Tests for the Balance Sheet, Profit & Loss and Cash Flow statements, the
statement run history and the Excel export.

The trading_year fixture books a year with net profit 58,000, closing cash
460,000 and total assets 576,000.
"""

import io
import uuid
from datetime import date
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from ledgercore.models.accounting import AccountType, CashFlowClass
from ledgercore.models.reporting import StatementType
from ledgercore.schemas.accounting import AccountCreate
from ledgercore.services.chart_of_accounts_service import ChartOfAccountsService
from ledgercore.services.financial_statement_service import FinancialStatementService
from ledgercore.services.report_export_service import FinancialReportExportService
from ledgercore.services.schedule_catalog import find_line
from ledgercore.utils.error_handling import (
    ErrorCode,
    FiscalYearNotFoundError,
    IncompleteStatementDataError,
    NotFoundException,
    ValidationException,
)


async def add_suspense_account(db_session, ctx, accounts) -> None:
    """Root-level asset with no statement mapping, registered in the code map."""
    account = await ChartOfAccountsService(db_session).create_account(
        ctx,
        AccountCreate(
            code="1900",
            name="Suspense",
            account_type=AccountType.ASSET,
            cash_flow_class=CashFlowClass.OTHER_CURRENT_ASSET,
        ),
    )
    accounts[account.code] = account.id


class TestBalanceSheet:
    """Tests for balance sheet generation."""

    @pytest.mark.asyncio
    async def test_balance_sheet_balances(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_balance_sheet(
            ctx, fiscal_year_id=fiscal_year_id
        )

        assert result.as_of_date == date(2025, 3, 31)
        assert result.net_profit == Decimal("58000.00")
        assert result.total_assets == Decimal("576000.00")
        assert result.total_equity_and_liabilities == Decimal("576000.00")
        assert result.is_balanced is True
        assert result.unmapped_accounts == []

    @pytest.mark.asyncio
    async def test_line_amounts(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_balance_sheet(
            ctx, fiscal_year_id=fiscal_year_id
        )
        lines = result.statement

        assert find_line(lines, "BS_ASSET_NCA_PPE").amount == Decimal("48000.00")
        assert find_line(lines, "BS_ASSET_CA_RECEIVABLES").amount == Decimal("68000.00")
        assert find_line(lines, "BS_ASSET_CA_CASH").amount == Decimal("460000.00")
        assert find_line(lines, "BS_ASSET_CA_TOTAL").amount == Decimal("528000.00")
        assert find_line(lines, "BS_EQUITY_SHARE_CAPITAL").amount == Decimal("500000.00")
        assert find_line(lines, "BS_LIAB_CL_OTHER").amount == Decimal("18000.00")
        # Mapped accounts without balances still feed their line
        assert find_line(lines, "BS_ASSET_CA_INVENTORIES").amount == Decimal("0.00")
        assert find_line(lines, "BS_ASSET_CA_INVENTORIES").zero_filled is False

    @pytest.mark.asyncio
    async def test_profit_carried_to_reserves(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_balance_sheet(
            ctx, fiscal_year_id=fiscal_year_id
        )

        reserves = find_line(result.statement, "BS_EQUITY_RESERVES")
        assert reserves.amount == Decimal("58000.00")
        assert reserves.children[-1].code == "NET_PROFIT"
        assert reserves.children[-1].amount == Decimal("58000.00")

    @pytest.mark.asyncio
    async def test_sub_schedule_lists_accounts(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_balance_sheet(
            ctx, fiscal_year_id=fiscal_year_id
        )

        ppe = find_line(result.statement, "BS_ASSET_NCA_PPE")
        amounts = {child.code: child.amount for child in ppe.children}
        assert amounts == {"1117": Decimal("60000.00"), "1119": Decimal("-12000.00")}
        assert all(child.indent_level == ppe.indent_level + 1 for child in ppe.children)

    @pytest.mark.asyncio
    async def test_as_of_date_inside_year(self, db_session, ctx, trading_year):
        result = await FinancialStatementService(db_session).generate_balance_sheet(
            ctx, as_of_date=date(2024, 4, 30)
        )

        assert result.total_assets == Decimal("500000.00")
        assert result.net_profit == Decimal("0.00")
        assert result.is_balanced is True

    @pytest.mark.asyncio
    async def test_unmapped_accounts_reported(self, db_session, ctx, fiscal_year_id, accounts, post_entry):
        await add_suspense_account(db_session, ctx, accounts)
        await post_entry(date(2024, 5, 10), [("1900", "1000", "0"), ("4110", "0", "1000")])

        result = await FinancialStatementService(db_session).generate_balance_sheet(
            ctx, fiscal_year_id=fiscal_year_id
        )

        assert [item.code for item in result.unmapped_accounts] == ["1900"]
        assert result.unmapped_accounts[0].balance == Decimal("1000.00")
        assert result.is_balanced is False

    @pytest.mark.asyncio
    async def test_strict_mode_refuses_unmapped(self, db_session, ctx, fiscal_year_id, accounts, post_entry):
        await add_suspense_account(db_session, ctx, accounts)
        await post_entry(date(2024, 5, 10), [("1900", "1000", "0"), ("4110", "0", "1000")])
        service = FinancialStatementService(db_session)

        with pytest.raises(IncompleteStatementDataError) as exc_info:
            await service.generate_balance_sheet(ctx, fiscal_year_id=fiscal_year_id, strict=True)

        assert exc_info.value.code == ErrorCode.INCOMPLETE_STATEMENT_DATA
        assert await service.list_runs(ctx) == []

    @pytest.mark.asyncio
    async def test_unknown_fiscal_year(self, db_session, ctx):
        with pytest.raises(FiscalYearNotFoundError):
            await FinancialStatementService(db_session).generate_balance_sheet(
                ctx, fiscal_year_id=uuid.uuid4()
            )


class TestProfitLoss:
    """Tests for the statement of profit and loss."""

    @pytest.mark.asyncio
    async def test_profit_and_loss(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_profit_loss(
            ctx, fiscal_year_id=fiscal_year_id
        )
        lines = result.statement

        assert result.from_date == date(2024, 4, 1)
        assert result.to_date == date(2025, 3, 31)
        assert result.net_profit == Decimal("58000.00")
        assert find_line(lines, "PL_REVENUE_OPERATIONS").amount == Decimal("100000.00")
        assert find_line(lines, "PL_DEPRECIATION").amount == Decimal("12000.00")
        assert find_line(lines, "PL_OTHER_EXPENSES").amount == Decimal("30000.00")
        assert find_line(lines, "PL_TOTAL_EXPENSES").amount == Decimal("42000.00")
        assert find_line(lines, "PL_PAT").amount == result.net_profit

    @pytest.mark.asyncio
    async def test_period_limits_movements(self, db_session, ctx, trading_year):
        result = await FinancialStatementService(db_session).generate_profit_loss(
            ctx, from_date=date(2024, 6, 1), to_date=date(2024, 12, 31)
        )

        assert result.net_profit == Decimal("-30000.00")
        assert find_line(result.statement, "PL_REVENUE_OPERATIONS").amount == Decimal("0.00")
        # No account maps to the inventory change line
        assert find_line(result.statement, "PL_INVENTORY_CHANGE").zero_filled is True

    @pytest.mark.asyncio
    async def test_defaults_to_current_year(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_profit_loss(ctx)

        assert result.fiscal_year_id == fiscal_year_id
        assert result.net_profit == Decimal("58000.00")

    @pytest.mark.asyncio
    async def test_no_period_rejected(self, db_session, bare_ctx):
        with pytest.raises(ValidationException):
            await FinancialStatementService(db_session).generate_profit_loss(bare_ctx)

    @pytest.mark.asyncio
    async def test_inverted_period_rejected(self, db_session, ctx):
        with pytest.raises(ValidationException) as exc_info:
            await FinancialStatementService(db_session).generate_profit_loss(
                ctx, from_date=date(2025, 1, 1), to_date=date(2024, 1, 1)
            )

        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE


class TestCashFlow:
    """Tests for the indirect-method cash flow statement."""

    @pytest.mark.asyncio
    async def test_cash_flow_reconciles(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_cash_flow(
            ctx, fiscal_year_id=fiscal_year_id
        )
        summary = result.summary

        assert result.net_profit == Decimal("58000.00")
        assert summary.net_cash_from_operating == Decimal("20000.00")
        assert summary.net_cash_from_investing == Decimal("-60000.00")
        assert summary.net_cash_from_financing == Decimal("500000.00")
        assert summary.net_increase == Decimal("460000.00")
        assert summary.opening_cash == Decimal("0.00")
        assert summary.closing_cash == Decimal("460000.00")
        assert summary.observed_closing_cash == summary.closing_cash

    @pytest.mark.asyncio
    async def test_operating_adjustments(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_cash_flow(
            ctx, fiscal_year_id=fiscal_year_id
        )
        lines = result.statement

        assert find_line(lines, "CFO_DEPRECIATION").amount == Decimal("12000.00")
        assert find_line(lines, "CFO_RECEIVABLES").amount == Decimal("-68000.00")
        assert find_line(lines, "CFO_OTHER_CL").amount == Decimal("18000.00")
        assert find_line(lines, "CFO_TOTAL").amount == Decimal("20000.00")
        assert find_line(lines, "CF_CLOSING").amount == Decimal("460000.00")

    @pytest.mark.asyncio
    async def test_opening_cash_from_earlier_postings(self, db_session, ctx, trading_year):
        result = await FinancialStatementService(db_session).generate_cash_flow(
            ctx, from_date=date(2024, 7, 1), to_date=date(2025, 3, 31)
        )
        summary = result.summary

        assert summary.opening_cash == Decimal("470000.00")
        assert summary.net_increase == Decimal("-10000.00")
        assert summary.closing_cash == Decimal("460000.00")
        assert summary.observed_closing_cash == Decimal("460000.00")

    @pytest.mark.asyncio
    async def test_unclassified_accounts_reported(self, db_session, ctx, fiscal_year_id, accounts, post_entry):
        # Bypass the class check the service applies on create
        account = await ChartOfAccountsService(db_session).get_account(ctx, accounts["1261"])
        account.cash_flow_class = None
        await db_session.commit()
        await post_entry(date(2024, 5, 10), [("1261", "700", "0"), ("1242", "0", "700")])

        result = await FinancialStatementService(db_session).generate_cash_flow(
            ctx, fiscal_year_id=fiscal_year_id
        )

        assert [item.code for item in result.unclassified_accounts] == ["1261"]
        assert result.summary.closing_cash != result.summary.observed_closing_cash


class TestStatementRuns:
    """Tests for statement history and export."""

    @pytest.mark.asyncio
    async def test_runs_are_recorded(self, db_session, ctx, fiscal_year_id, trading_year):
        service = FinancialStatementService(db_session)
        balance_sheet = await service.generate_balance_sheet(ctx, fiscal_year_id=fiscal_year_id)
        await service.generate_profit_loss(ctx, fiscal_year_id=fiscal_year_id)

        runs = await service.list_runs(ctx)
        assert len(runs) == 2

        only_bs = await service.list_runs(ctx, statement_type=StatementType.BALANCE_SHEET)
        assert [run.id for run in only_bs] == [balance_sheet.run_id]

        run = await service.get_run(ctx, balance_sheet.run_id)
        assert run.generated_by_id == ctx.user_id
        assert run.as_of_date == date(2025, 3, 31)
        assert run.generated_data["total_assets"] == "576000.00"
        assert run.generated_data["run_id"] == str(balance_sheet.run_id)

    @pytest.mark.asyncio
    async def test_history_limit(self, db_session, ctx, fiscal_year_id):
        service = FinancialStatementService(db_session)
        for _ in range(3):
            await service.generate_balance_sheet(ctx, fiscal_year_id=fiscal_year_id)

        assert len(await service.list_runs(ctx, limit=2)) == 2

    @pytest.mark.asyncio
    async def test_run_of_other_company_hidden(self, db_session, ctx, bare_ctx, fiscal_year_id):
        service = FinancialStatementService(db_session)
        result = await service.generate_balance_sheet(ctx, fiscal_year_id=fiscal_year_id)

        with pytest.raises(NotFoundException) as exc_info:
            await service.get_run(bare_ctx, result.run_id)

        assert exc_info.value.code == ErrorCode.STATEMENT_RUN_NOT_FOUND

    @pytest.mark.asyncio
    async def test_export_balance_sheet(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_balance_sheet(
            ctx, fiscal_year_id=fiscal_year_id
        )

        content, filename = await FinancialReportExportService(db_session).export_run(ctx, result.run_id)

        assert filename == "balance_sheet_20250331.xlsx"
        ws = load_workbook(io.BytesIO(content)).active
        assert ws["A1"].value == "Acme Traders Pvt Ltd"
        assert ws["A2"].value == "Balance Sheet"
        assert ws["A3"].value == "As of March 31, 2025"
        assert ws["C5"].value == "Amount (INR)"

        rows = {row[0]: row for row in ws.iter_rows(min_row=6, values_only=True) if row[0]}
        assert rows["BS_ASSETS_TOTAL"][2] == 576000.0
        assert rows["1117"][2] == 60000.0

    @pytest.mark.asyncio
    async def test_export_cash_flow_includes_summary(self, db_session, ctx, fiscal_year_id, trading_year):
        result = await FinancialStatementService(db_session).generate_cash_flow(
            ctx, fiscal_year_id=fiscal_year_id
        )

        content, filename = await FinancialReportExportService(db_session).export_run(ctx, result.run_id)

        assert filename == "cash_flow_20250331.xlsx"
        ws = load_workbook(io.BytesIO(content)).active
        assert ws["A3"].value == "For the period April 01, 2024 to March 31, 2025"
        labels = {row[1]: row[2] for row in ws.iter_rows(min_row=6, values_only=True) if row[1]}
        assert labels["Closing Cash"] == 460000.0
        assert labels["Net Profit"] == 58000.0
