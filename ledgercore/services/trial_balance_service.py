"""
LedgerCore - Trial Balance Service

Read-time balance aggregation over posted journal lines:
- Per-account movement totals (the single read path shared with statements)
- Trial balance with opening, period and closing columns
- Account ledger with running balance
- Staleness flag maintained by every ledger mutation
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.config import settings
from ledgercore.context import LedgerContext
from ledgercore.database import atomic
from ledgercore.models.accounting import (
    Account, AccountType, JournalEntry, JournalEntryLine, JournalEntryStatus,
    TrialBalanceCache,
)
from ledgercore.models.base import utcnow
from ledgercore.schemas.accounting import (
    AccountLedgerLine,
    AccountLedgerReport,
    TrialBalanceItem,
    TrialBalanceReport,
    TrialBalanceStatus,
    TrialBalanceSummary,
    TrialBalanceTotals,
)
from ledgercore.utils.error_handling import AccountNotFoundError
from ledgercore.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)

Movements = Dict[uuid.UUID, Tuple[Decimal, Decimal]]


def split_balance(net: Decimal) -> Tuple[Decimal, Decimal]:
    """Signed debit-minus-credit amount as a (debit, credit) pair."""
    if net >= 0:
        return net, ZERO
    return ZERO, -net


def side_label(net: Decimal) -> str:
    return "Dr" if net >= 0 else "Cr"


class TrialBalanceService:
    """Service for trial balance reads and the staleness flag."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    async def aggregate_movements(
        self,
        ctx: LedgerContext,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        before_date: Optional[date] = None,
    ) -> Movements:
        """
        Sum posted debits and credits per account.

        from_date/to_date bound the range inclusively; before_date selects
        everything strictly earlier (used for opening balances).
        """
        conditions = [
            JournalEntry.company_id == ctx.company_id,
            JournalEntry.status == JournalEntryStatus.POSTED,
        ]
        if from_date:
            conditions.append(JournalEntry.entry_date >= from_date)
        if to_date:
            conditions.append(JournalEntry.entry_date <= to_date)
        if before_date:
            conditions.append(JournalEntry.entry_date < before_date)

        query = (
            select(
                JournalEntryLine.account_id,
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0).label("total_debit"),
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0).label("total_credit"),
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(and_(*conditions))
            .group_by(JournalEntryLine.account_id)
        )
        result = await self.db.execute(query)

        return {
            row.account_id: (to_money(row.total_debit), to_money(row.total_credit))
            for row in result.all()
        }

    async def closing_balances(
        self,
        ctx: LedgerContext,
        accounts: List[Account],
        as_of_date: date,
    ) -> Dict[uuid.UUID, Decimal]:
        """Signed (debit minus credit) closing balance per account, opening balance included."""
        movements = await self.aggregate_movements(ctx, to_date=as_of_date)
        balances = {}
        for account in accounts:
            debit, credit = movements.get(account.id, (ZERO, ZERO))
            balances[account.id] = account.signed_opening_balance + debit - credit
        return balances

    async def _load_accounts(self, ctx: LedgerContext) -> List[Account]:
        result = await self.db.execute(
            select(Account)
            .where(Account.company_id == ctx.company_id)
            .order_by(Account.code)
        )
        return list(result.scalars().all())

    # =========================================================================
    # TRIAL BALANCE
    # =========================================================================

    async def get_trial_balance(
        self,
        ctx: LedgerContext,
        as_of_date: date,
        from_date: Optional[date] = None,
    ) -> TrialBalanceReport:
        """
        Trial balance as of a date.

        Without from_date every posting up to as_of_date is a period movement
        and the opening columns hold only the accounts' opening balances.
        Group rows carry the sum of their descendants; totals are taken over
        postable accounts only so nothing is counted twice.
        """
        started_at = utcnow()
        accounts = await self._load_accounts(ctx)

        if from_date:
            earlier = await self.aggregate_movements(ctx, before_date=from_date)
            period = await self.aggregate_movements(ctx, from_date=from_date, to_date=as_of_date)
        else:
            earlier = {}
            period = await self.aggregate_movements(ctx, to_date=as_of_date)

        by_id = {account.id: account for account in accounts}
        # account_id -> [opening net, period debit, period credit]
        figures: Dict[uuid.UUID, List[Decimal]] = {
            account.id: [ZERO, ZERO, ZERO] for account in accounts
        }

        for account in accounts:
            if account.is_group:
                continue
            pre_debit, pre_credit = earlier.get(account.id, (ZERO, ZERO))
            opening = account.signed_opening_balance + pre_debit - pre_credit
            period_debit, period_credit = period.get(account.id, (ZERO, ZERO))

            # Propagate the leaf's figures to itself and every ancestor
            node = account
            while node is not None:
                row = figures[node.id]
                row[0] += opening
                row[1] += period_debit
                row[2] += period_credit
                node = by_id.get(node.parent_id)

        items = []
        totals = TrialBalanceTotals()
        for account in accounts:
            opening, period_debit, period_credit = figures[account.id]
            closing = opening + period_debit - period_credit
            opening_debit, opening_credit = split_balance(opening)
            closing_debit, closing_credit = split_balance(closing)

            items.append(TrialBalanceItem(
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                level=account.level,
                is_group=account.is_group,
                opening_debit=opening_debit,
                opening_credit=opening_credit,
                period_debit=period_debit,
                period_credit=period_credit,
                closing_debit=closing_debit,
                closing_credit=closing_credit,
            ))

            if not account.is_group:
                totals.opening_debit += opening_debit
                totals.opening_credit += opening_credit
                totals.period_debit += period_debit
                totals.period_credit += period_credit
                totals.closing_debit += closing_debit
                totals.closing_credit += closing_credit

        is_balanced = abs(totals.closing_debit - totals.closing_credit) < settings.balance_tolerance

        async with atomic(self.db):
            cache = await self._get_or_create_cache(ctx)
            was_stale = cache.is_stale
            # A mutation marked after this read began keeps the flag set
            await self.db.execute(
                update(TrialBalanceCache)
                .where(
                    and_(
                        TrialBalanceCache.company_id == ctx.company_id,
                        or_(
                            TrialBalanceCache.marked_stale_at.is_(None),
                            TrialBalanceCache.marked_stale_at < started_at,
                        ),
                    )
                )
                .values(is_stale=False)
                .execution_options(synchronize_session="fetch")
            )
            cache.computed_at = utcnow()
            computed_at = cache.computed_at
            await self.db.flush()

        if not is_balanced:
            logger.warning(
                f"Trial balance for company {ctx.company_id} as of {as_of_date} is out by "
                f"{totals.closing_debit - totals.closing_credit}"
            )

        return TrialBalanceReport(
            company_id=ctx.company_id,
            as_of_date=as_of_date,
            from_date=from_date,
            items=items,
            totals=totals,
            is_balanced=is_balanced,
            was_stale=was_stale,
            computed_at=computed_at,
        )

    async def get_summary(self, ctx: LedgerContext, as_of_date: date) -> TrialBalanceSummary:
        """Closing totals per account type, each in its natural direction."""
        accounts = [a for a in await self._load_accounts(ctx) if not a.is_group]
        balances = await self.closing_balances(ctx, accounts, as_of_date)

        totals = {account_type: ZERO for account_type in AccountType}
        for account in accounts:
            net = balances[account.id]
            totals[account.account_type] += net if account.is_debit_nature else -net

        net_profit = totals[AccountType.INCOME] - totals[AccountType.EXPENSE]
        difference = totals[AccountType.ASSET] - (
            totals[AccountType.LIABILITY] + totals[AccountType.EQUITY] + net_profit
        )

        return TrialBalanceSummary(
            as_of_date=as_of_date,
            total_assets=totals[AccountType.ASSET],
            total_liabilities=totals[AccountType.LIABILITY],
            total_equity=totals[AccountType.EQUITY],
            total_income=totals[AccountType.INCOME],
            total_expenses=totals[AccountType.EXPENSE],
            net_profit=net_profit,
            equation_balanced=abs(difference) < settings.balance_tolerance,
        )

    # =========================================================================
    # ACCOUNT LEDGER
    # =========================================================================

    async def get_account_ledger(
        self,
        ctx: LedgerContext,
        account_id: uuid.UUID,
        to_date: date,
        from_date: Optional[date] = None,
    ) -> AccountLedgerReport:
        """Posted lines of one account with a running balance and Dr/Cr side."""
        result = await self.db.execute(
            select(Account).where(
                and_(Account.id == account_id, Account.company_id == ctx.company_id)
            )
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_id)

        running = account.signed_opening_balance
        if from_date:
            earlier = await self.aggregate_movements(ctx, before_date=from_date)
            pre_debit, pre_credit = earlier.get(account.id, (ZERO, ZERO))
            running += pre_debit - pre_credit
        opening = running

        conditions = [
            JournalEntry.company_id == ctx.company_id,
            JournalEntry.status == JournalEntryStatus.POSTED,
            JournalEntryLine.account_id == account.id,
            JournalEntry.entry_date <= to_date,
        ]
        if from_date:
            conditions.append(JournalEntry.entry_date >= from_date)

        rows = await self.db.execute(
            select(JournalEntryLine, JournalEntry)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(and_(*conditions))
            .order_by(JournalEntry.entry_date, JournalEntry.entry_number, JournalEntryLine.sort_order)
        )

        lines = []
        for line, entry in rows.all():
            debit = to_money(line.debit_amount)
            credit = to_money(line.credit_amount)
            running += debit - credit
            lines.append(AccountLedgerLine(
                entry_id=entry.id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                narration=entry.narration,
                description=line.description,
                debit_amount=debit,
                credit_amount=credit,
                balance=abs(running),
                balance_side=side_label(running),
            ))

        return AccountLedgerReport(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            from_date=from_date,
            to_date=to_date,
            opening_balance=abs(opening),
            opening_side=side_label(opening),
            lines=lines,
            closing_balance=abs(running),
            closing_side=side_label(running),
        )

    # =========================================================================
    # STALENESS FLAG
    # =========================================================================

    async def _get_or_create_cache(self, ctx: LedgerContext) -> TrialBalanceCache:
        result = await self.db.execute(
            select(TrialBalanceCache).where(TrialBalanceCache.company_id == ctx.company_id)
        )
        cache = result.scalar_one_or_none()
        if cache is None:
            cache = TrialBalanceCache(company_id=ctx.company_id, is_stale=True)
            self.db.add(cache)
            await self.db.flush()
        return cache

    async def mark_stale(self, ctx: LedgerContext) -> None:
        """Flag the trial balance as stale; runs inside the caller's transaction."""
        cache = await self._get_or_create_cache(ctx)
        cache.is_stale = True
        cache.marked_stale_at = utcnow()
        await self.db.flush()

    async def is_stale(self, ctx: LedgerContext) -> bool:
        result = await self.db.execute(
            select(TrialBalanceCache.is_stale).where(TrialBalanceCache.company_id == ctx.company_id)
        )
        flag = result.scalar_one_or_none()
        return True if flag is None else bool(flag)

    async def get_status(self, ctx: LedgerContext) -> TrialBalanceStatus:
        result = await self.db.execute(
            select(TrialBalanceCache).where(TrialBalanceCache.company_id == ctx.company_id)
        )
        cache = result.scalar_one_or_none()
        if cache is None:
            return TrialBalanceStatus(company_id=ctx.company_id, is_stale=True)
        return TrialBalanceStatus(
            company_id=ctx.company_id,
            is_stale=cache.is_stale,
            marked_stale_at=cache.marked_stale_at,
            computed_at=cache.computed_at,
        )
