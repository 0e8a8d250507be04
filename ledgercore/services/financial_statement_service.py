"""
LedgerCore - Financial Statement Service

Derives regulatory statements from posted ledger lines:
- Balance Sheet as of a date (Schedule III layout)
- Statement of Profit and Loss for a period
- Cash Flow Statement for a period (indirect method)

Every generated statement is stored as an immutable run.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.config import settings
from ledgercore.context import LedgerContext
from ledgercore.database import atomic
from ledgercore.models.accounting import Account, AccountType, CashFlowClass, FiscalYear
from ledgercore.models.company import Company
from ledgercore.models.reporting import StatementRun, StatementType
from ledgercore.schemas.reporting import (
    BalanceSheetResult,
    CashFlowResult,
    CashFlowSummary,
    ProfitLossResult,
    StatementLine,
    UnmappedAccount,
)
from ledgercore.services.chart_of_accounts_service import effective_mapping_codes
from ledgercore.services.fiscal_year_service import FiscalYearService
from ledgercore.services.schedule_catalog import (
    CASH_FLOW_LAYOUT,
    RESERVES_LINE,
    TOTAL_ASSETS_LINE,
    TOTAL_EQUITY_LIABILITIES_LINE,
    build_statement_lines,
    find_line,
    item_codes,
    load_catalog,
)
from ledgercore.services.trial_balance_service import TrialBalanceService
from ledgercore.utils.error_handling import (
    CompanyNotFoundError,
    ErrorCode,
    IncompleteStatementDataError,
    NotFoundException,
    ValidationException,
)
from ledgercore.utils.money import ZERO

logger = logging.getLogger(__name__)

PROFIT_LOSS_TYPES = (AccountType.INCOME, AccountType.EXPENSE)


class FinancialStatementService:
    """Service for generating financial statements."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.trial_balance = TrialBalanceService(db)
        self.fiscal_years = FiscalYearService(db)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_company(self, ctx: LedgerContext) -> Company:
        company = await self.db.get(Company, ctx.company_id)
        if company is None:
            raise CompanyNotFoundError(ctx.company_id)
        return company

    async def _load_accounts(self, ctx: LedgerContext) -> List[Account]:
        result = await self.db.execute(
            select(Account)
            .where(Account.company_id == ctx.company_id)
            .order_by(Account.code)
        )
        return list(result.scalars().all())

    async def _resolve_period(
        self,
        ctx: LedgerContext,
        fiscal_year_id: Optional[uuid.UUID],
        from_date: Optional[date],
        to_date: Optional[date],
    ) -> Tuple[Optional[FiscalYear], date, date]:
        """Explicit dates win; missing bounds come from the fiscal year, else the current one."""
        fiscal_year = None
        if fiscal_year_id:
            fiscal_year = await self.fiscal_years.get_fiscal_year(ctx, fiscal_year_id)
        elif from_date is None or to_date is None:
            fiscal_year = await self.fiscal_years.get_current_fiscal_year(ctx)
            if fiscal_year is None:
                raise ValidationException(
                    message="Provide a fiscal year or both from_date and to_date",
                    field="fiscal_year_id",
                )

        from_date = from_date or fiscal_year.start_date
        to_date = to_date or fiscal_year.end_date
        if from_date > to_date:
            raise ValidationException(
                message="from_date must not be after to_date",
                field="from_date",
                code=ErrorCode.INVALID_DATE_RANGE,
            )
        return fiscal_year, from_date, to_date

    @staticmethod
    def _is_strict(strict: Optional[bool]) -> bool:
        return settings.statement_strict_mode if strict is None else strict

    @staticmethod
    def _check_unmapped(
        ctx: LedgerContext,
        statement_type: StatementType,
        unmapped: List[UnmappedAccount],
        strict: bool,
    ) -> None:
        if not unmapped:
            return
        codes = ", ".join(item.code for item in unmapped)
        if strict:
            raise IncompleteStatementDataError([item.model_dump(mode="json") for item in unmapped])
        logger.warning(
            f"{statement_type.value} for company {ctx.company_id} leaves out "
            f"{len(unmapped)} account(s) with balances: {codes}"
        )

    async def _save_run(
        self,
        ctx: LedgerContext,
        statement_type: StatementType,
        fiscal_year: Optional[FiscalYear],
        as_of_date: date,
        result,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> StatementRun:
        run_id = uuid.uuid4()
        result.run_id = run_id
        run = StatementRun(
            id=run_id,
            company_id=ctx.company_id,
            fiscal_year_id=fiscal_year.id if fiscal_year else None,
            statement_type=statement_type,
            as_of_date=as_of_date,
            from_date=from_date,
            to_date=to_date,
            generated_data=result.model_dump(mode="json"),
            generated_by_id=ctx.user_id,
        )
        async with atomic(self.db):
            self.db.add(run)
            await self.db.flush()

        logger.info(f"Generated {statement_type.value} run {run_id} for company {ctx.company_id}")
        return run

    @staticmethod
    def _breakdown_line(account: Account, amount: Decimal, indent_level: int) -> StatementLine:
        return StatementLine(
            code=account.code,
            name=account.name,
            amount=amount,
            indent_level=indent_level,
        )

    # =========================================================================
    # BALANCE SHEET
    # =========================================================================

    async def generate_balance_sheet(
        self,
        ctx: LedgerContext,
        fiscal_year_id: Optional[uuid.UUID] = None,
        as_of_date: Optional[date] = None,
        strict: Optional[bool] = None,
    ) -> BalanceSheetResult:
        """
        Generate the Balance Sheet as of a date.

        Balances are cumulative and include opening balances. The period's
        profit is carried to Reserves and Surplus so the two sides agree.
        """
        company = await self._get_company(ctx)
        fiscal_year = None
        if fiscal_year_id:
            fiscal_year = await self.fiscal_years.get_fiscal_year(ctx, fiscal_year_id)
        as_of_date = as_of_date or (fiscal_year.end_date if fiscal_year else date.today())

        rows = await load_catalog(self.db, company.gaap_standard, StatementType.BALANCE_SHEET)
        valid_codes = item_codes(rows)
        indents = {row.line_item_code: row.indent_level for row in rows}

        accounts = await self._load_accounts(ctx)
        mapping = effective_mapping_codes(accounts)
        leaves = [account for account in accounts if not account.is_group]
        balances = await self.trial_balance.closing_balances(ctx, leaves, as_of_date)

        amounts: Dict[str, Decimal] = {}
        breakdown: Dict[str, List[StatementLine]] = defaultdict(list)
        unmapped: List[UnmappedAccount] = []
        net_profit = ZERO

        for account in leaves:
            net = balances[account.id]
            if account.account_type in PROFIT_LOSS_TYPES:
                net_profit -= net
                continue

            amount = net if account.is_debit_nature else -net
            code = mapping.get(account.id)
            if code not in valid_codes:
                if net != 0:
                    unmapped.append(UnmappedAccount(
                        account_id=account.id, code=account.code, name=account.name, balance=amount,
                    ))
                continue

            amounts[code] = amounts.get(code, ZERO) + amount
            if amount != 0:
                breakdown[code].append(self._breakdown_line(account, amount, indents[code] + 1))

        if net_profit != 0 and RESERVES_LINE in valid_codes:
            amounts[RESERVES_LINE] = amounts.get(RESERVES_LINE, ZERO) + net_profit
            breakdown[RESERVES_LINE].append(StatementLine(
                code="NET_PROFIT",
                name="Surplus in Statement of Profit and Loss",
                amount=net_profit,
                indent_level=indents[RESERVES_LINE] + 1,
            ))

        self._check_unmapped(ctx, StatementType.BALANCE_SHEET, unmapped, self._is_strict(strict))

        lines = build_statement_lines(rows, amounts, breakdown)
        total_assets = find_line(lines, TOTAL_ASSETS_LINE)
        total_equity_liabilities = find_line(lines, TOTAL_EQUITY_LIABILITIES_LINE)
        total_assets = total_assets.amount if total_assets else ZERO
        total_equity_liabilities = total_equity_liabilities.amount if total_equity_liabilities else ZERO

        result = BalanceSheetResult(
            fiscal_year_id=fiscal_year.id if fiscal_year else None,
            as_of_date=as_of_date,
            statement=lines,
            net_profit=net_profit,
            total_assets=total_assets,
            total_equity_and_liabilities=total_equity_liabilities,
            is_balanced=abs(total_assets - total_equity_liabilities) < settings.balance_tolerance,
            unmapped_accounts=unmapped,
        )
        if not result.is_balanced:
            logger.warning(
                f"Balance sheet for company {ctx.company_id} as of {as_of_date} does not balance: "
                f"assets {total_assets}, equity and liabilities {total_equity_liabilities}"
            )

        await self._save_run(ctx, StatementType.BALANCE_SHEET, fiscal_year, as_of_date, result)
        return result

    # =========================================================================
    # PROFIT AND LOSS
    # =========================================================================

    async def generate_profit_loss(
        self,
        ctx: LedgerContext,
        fiscal_year_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        strict: Optional[bool] = None,
    ) -> ProfitLossResult:
        """Generate the Statement of Profit and Loss from the period's movements."""
        company = await self._get_company(ctx)
        fiscal_year, from_date, to_date = await self._resolve_period(ctx, fiscal_year_id, from_date, to_date)

        rows = await load_catalog(self.db, company.gaap_standard, StatementType.PROFIT_LOSS)
        valid_codes = item_codes(rows)
        indents = {row.line_item_code: row.indent_level for row in rows}

        accounts = await self._load_accounts(ctx)
        mapping = effective_mapping_codes(accounts)
        movements = await self.trial_balance.aggregate_movements(ctx, from_date=from_date, to_date=to_date)

        amounts: Dict[str, Decimal] = {}
        breakdown: Dict[str, List[StatementLine]] = defaultdict(list)
        unmapped: List[UnmappedAccount] = []
        net_profit = ZERO

        for account in accounts:
            if account.is_group or account.account_type not in PROFIT_LOSS_TYPES:
                continue
            debit, credit = movements.get(account.id, (ZERO, ZERO))
            net_profit += credit - debit
            amount = credit - debit if account.account_type == AccountType.INCOME else debit - credit

            code = mapping.get(account.id)
            if code not in valid_codes:
                if amount != 0:
                    unmapped.append(UnmappedAccount(
                        account_id=account.id, code=account.code, name=account.name, balance=amount,
                    ))
                continue

            amounts[code] = amounts.get(code, ZERO) + amount
            if amount != 0:
                breakdown[code].append(self._breakdown_line(account, amount, indents[code] + 1))

        self._check_unmapped(ctx, StatementType.PROFIT_LOSS, unmapped, self._is_strict(strict))

        result = ProfitLossResult(
            fiscal_year_id=fiscal_year.id if fiscal_year else None,
            from_date=from_date,
            to_date=to_date,
            statement=build_statement_lines(rows, amounts, breakdown),
            net_profit=net_profit,
            unmapped_accounts=unmapped,
        )

        await self._save_run(
            ctx, StatementType.PROFIT_LOSS, fiscal_year, to_date, result,
            from_date=from_date, to_date=to_date,
        )
        return result

    # =========================================================================
    # CASH FLOW
    # =========================================================================

    async def generate_cash_flow(
        self,
        ctx: LedgerContext,
        fiscal_year_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        strict: Optional[bool] = None,
    ) -> CashFlowResult:
        """
        Generate the Cash Flow Statement using the indirect method.

        Starts from the period's net profit, adds back depreciation and
        adjusts for the change in each balance sheet bucket. Deltas are
        positive when the account grows in its natural direction.
        """
        fiscal_year, from_date, to_date = await self._resolve_period(ctx, fiscal_year_id, from_date, to_date)

        accounts = await self._load_accounts(ctx)
        earlier = await self.trial_balance.aggregate_movements(ctx, before_date=from_date)
        movements = await self.trial_balance.aggregate_movements(ctx, from_date=from_date, to_date=to_date)

        deltas: Dict[CashFlowClass, Decimal] = {cf_class: ZERO for cf_class in CashFlowClass}
        unclassified: List[UnmappedAccount] = []
        net_profit = ZERO
        depreciation = ZERO
        opening_cash = ZERO

        for account in accounts:
            if account.is_group:
                continue
            debit, credit = movements.get(account.id, (ZERO, ZERO))

            if account.account_type in PROFIT_LOSS_TYPES:
                net_profit += credit - debit
                continue

            cf_class = account.cash_flow_class
            if cf_class is None:
                if debit != credit:
                    unclassified.append(UnmappedAccount(
                        account_id=account.id, code=account.code, name=account.name,
                        balance=debit - credit if account.is_debit_nature else credit - debit,
                    ))
                continue

            if cf_class == CashFlowClass.CASH:
                pre_debit, pre_credit = earlier.get(account.id, (ZERO, ZERO))
                opening_cash += account.signed_opening_balance + pre_debit - pre_credit
                deltas[cf_class] += debit - credit
            elif cf_class == CashFlowClass.ACCUMULATED_DEPRECIATION:
                depreciation += credit - debit
            elif account.is_debit_nature:
                deltas[cf_class] += debit - credit
            else:
                deltas[cf_class] += credit - debit

        self._check_unmapped(ctx, StatementType.CASH_FLOW, unclassified, self._is_strict(strict))

        net_operating = (
            net_profit
            + depreciation
            - deltas[CashFlowClass.RECEIVABLE]
            - deltas[CashFlowClass.INVENTORY]
            - deltas[CashFlowClass.OTHER_CURRENT_ASSET]
            + deltas[CashFlowClass.PAYABLE]
            + deltas[CashFlowClass.OTHER_CURRENT_LIABILITY]
        )
        net_investing = -deltas[CashFlowClass.FIXED_ASSET] - deltas[CashFlowClass.INVESTMENT]
        net_financing = deltas[CashFlowClass.BORROWING] + deltas[CashFlowClass.EQUITY]
        net_increase = net_operating + net_investing + net_financing

        amounts = {
            "CFO_NET_PROFIT": net_profit,
            "CFO_DEPRECIATION": depreciation,
            "CFO_RECEIVABLES": -deltas[CashFlowClass.RECEIVABLE],
            "CFO_INVENTORY": -deltas[CashFlowClass.INVENTORY],
            "CFO_OTHER_CA": -deltas[CashFlowClass.OTHER_CURRENT_ASSET],
            "CFO_PAYABLES": deltas[CashFlowClass.PAYABLE],
            "CFO_OTHER_CL": deltas[CashFlowClass.OTHER_CURRENT_LIABILITY],
            "CFI_FIXED_ASSETS": -deltas[CashFlowClass.FIXED_ASSET],
            "CFI_INVESTMENTS": -deltas[CashFlowClass.INVESTMENT],
            "CFF_BORROWINGS": deltas[CashFlowClass.BORROWING],
            "CFF_EQUITY": deltas[CashFlowClass.EQUITY],
            "CF_OPENING": opening_cash,
        }

        summary = CashFlowSummary(
            net_cash_from_operating=net_operating,
            net_cash_from_investing=net_investing,
            net_cash_from_financing=net_financing,
            net_increase=net_increase,
            opening_cash=opening_cash,
            closing_cash=opening_cash + net_increase,
            observed_closing_cash=opening_cash + deltas[CashFlowClass.CASH],
        )
        if summary.closing_cash != summary.observed_closing_cash:
            logger.warning(
                f"Cash flow for company {ctx.company_id} ({from_date} to {to_date}): derived closing cash "
                f"{summary.closing_cash} differs from cash accounts {summary.observed_closing_cash}"
            )

        result = CashFlowResult(
            fiscal_year_id=fiscal_year.id if fiscal_year else None,
            from_date=from_date,
            to_date=to_date,
            statement=build_statement_lines(CASH_FLOW_LAYOUT, amounts),
            net_profit=net_profit,
            summary=summary,
            unclassified_accounts=unclassified,
        )

        await self._save_run(
            ctx, StatementType.CASH_FLOW, fiscal_year, to_date, result,
            from_date=from_date, to_date=to_date,
        )
        return result

    # =========================================================================
    # HISTORY
    # =========================================================================

    async def list_runs(
        self,
        ctx: LedgerContext,
        statement_type: Optional[StatementType] = None,
        limit: Optional[int] = None,
    ) -> List[StatementRun]:
        """Previously generated statements, newest first."""
        conditions = [StatementRun.company_id == ctx.company_id]
        if statement_type:
            conditions.append(StatementRun.statement_type == statement_type)

        result = await self.db.execute(
            select(StatementRun)
            .where(and_(*conditions))
            .order_by(StatementRun.generated_at.desc())
            .limit(limit or settings.statement_history_limit)
        )
        return list(result.scalars().all())

    async def get_run(self, ctx: LedgerContext, run_id: uuid.UUID) -> StatementRun:
        result = await self.db.execute(
            select(StatementRun).where(
                and_(
                    StatementRun.id == run_id,
                    StatementRun.company_id == ctx.company_id,
                )
            )
        )
        run = result.scalar_one_or_none()
        if run is None:
            raise NotFoundException(
                resource_type="Statement run",
                resource_id=run_id,
                code=ErrorCode.STATEMENT_RUN_NOT_FOUND,
            )
        return run
