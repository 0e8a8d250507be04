"""
LedgerCore - Trial Balance Tests

Tests for balance aggregation, the account ledger and the staleness flag.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledgercore.models.accounting import BalanceSide, JournalEntryStatus
from ledgercore.schemas.accounting import AccountUpdate
from ledgercore.services.chart_of_accounts_service import ChartOfAccountsService
from ledgercore.services.journal_service import JournalService
from ledgercore.services.trial_balance_service import (
    TrialBalanceService,
    side_label,
    split_balance,
)
from ledgercore.utils.error_handling import AccountIsGroupError, AccountNotFoundError


def row_for(report, code):
    return next(item for item in report.items if item.account_code == code)


class TestHelpers:
    """Tests for balance presentation helpers."""

    def test_split_balance(self):
        assert split_balance(Decimal("250.00")) == (Decimal("250.00"), Decimal("0.00"))
        assert split_balance(Decimal("-75.50")) == (Decimal("0.00"), Decimal("75.50"))
        assert split_balance(Decimal("0.00")) == (Decimal("0.00"), Decimal("0.00"))

    def test_side_label(self):
        assert side_label(Decimal("10")) == "Dr"
        assert side_label(Decimal("0")) == "Dr"
        assert side_label(Decimal("-10")) == "Cr"


class TestTrialBalance:
    """Tests for the trial balance report."""

    @pytest.mark.asyncio
    async def test_balanced_after_trading(self, db_session, ctx, trading_year):
        report = await TrialBalanceService(db_session).get_trial_balance(ctx, date(2025, 3, 31))

        assert report.is_balanced is True
        assert report.totals.closing_debit == report.totals.closing_credit
        assert row_for(report, "1242").closing_debit == Decimal("460000.00")
        assert row_for(report, "3110").closing_credit == Decimal("500000.00")
        assert row_for(report, "1119").closing_credit == Decimal("12000.00")

    @pytest.mark.asyncio
    async def test_group_rows_aggregate_descendants(self, db_session, ctx, trading_year):
        report = await TrialBalanceService(db_session).get_trial_balance(ctx, date(2025, 3, 31))

        # Cash group holds bank; PPE group nets computers against depreciation
        assert row_for(report, "1240").closing_debit == Decimal("460000.00")
        assert row_for(report, "1110").closing_debit == Decimal("48000.00")
        assert row_for(report, "1000").closing_debit == Decimal("576000.00")

    @pytest.mark.asyncio
    async def test_as_of_date_excludes_later_postings(self, db_session, ctx, trading_year):
        report = await TrialBalanceService(db_session).get_trial_balance(ctx, date(2024, 4, 30))

        assert row_for(report, "1242").closing_debit == Decimal("500000.00")
        assert row_for(report, "1230").closing_debit == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_drafts_are_ignored(self, db_session, ctx, post_entry):
        await post_entry(
            date(2024, 5, 10),
            [("1230", "1000", "0"), ("4110", "0", "1000")],
            status=JournalEntryStatus.DRAFT,
        )

        report = await TrialBalanceService(db_session).get_trial_balance(ctx, date(2025, 3, 31))

        assert row_for(report, "1230").period_debit == Decimal("0.00")
        assert report.totals.closing_debit == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_from_date_splits_opening_and_period(self, db_session, ctx, trading_year):
        report = await TrialBalanceService(db_session).get_trial_balance(
            ctx, date(2025, 3, 31), from_date=date(2024, 7, 1)
        )

        bank = row_for(report, "1242")
        assert bank.opening_debit == Decimal("470000.00")
        assert bank.period_debit == Decimal("50000.00")
        assert bank.period_credit == Decimal("60000.00")
        assert bank.closing_debit == Decimal("460000.00")
        assert report.totals.opening_debit == report.totals.opening_credit

    @pytest.mark.asyncio
    async def test_opening_balances_included(self, db_session, ctx, accounts):
        service = ChartOfAccountsService(db_session)
        await service.update_account(
            ctx, accounts["1241"],
            AccountUpdate(opening_balance=Decimal("2500"), opening_balance_side=BalanceSide.DEBIT),
        )
        await service.update_account(
            ctx, accounts["3110"],
            AccountUpdate(opening_balance=Decimal("2500"), opening_balance_side=BalanceSide.CREDIT),
        )

        report = await TrialBalanceService(db_session).get_trial_balance(ctx, date(2024, 4, 1))

        assert row_for(report, "1241").opening_debit == Decimal("2500.00")
        assert row_for(report, "3110").closing_credit == Decimal("2500.00")
        assert report.is_balanced is True

    @pytest.mark.asyncio
    async def test_reversal_cancels_out(self, db_session, ctx, post_entry):
        entry = await post_entry(date(2024, 5, 10), [("1230", "1000", "0"), ("4110", "0", "1000")])
        await JournalService(db_session).reverse_entry(ctx, entry.id)

        report = await TrialBalanceService(db_session).get_trial_balance(ctx, date(2025, 3, 31))

        receivables = row_for(report, "1230")
        assert receivables.period_debit == Decimal("1000.00")
        assert receivables.period_credit == Decimal("1000.00")
        assert receivables.closing_debit == Decimal("0.00")
        assert receivables.closing_credit == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_summary_checks_accounting_equation(self, db_session, ctx, trading_year):
        summary = await TrialBalanceService(db_session).get_summary(ctx, date(2025, 3, 31))

        assert summary.total_assets == Decimal("576000.00")
        assert summary.total_liabilities == Decimal("18000.00")
        assert summary.total_equity == Decimal("500000.00")
        assert summary.total_income == Decimal("100000.00")
        assert summary.total_expenses == Decimal("42000.00")
        assert summary.net_profit == Decimal("58000.00")
        assert summary.equation_balanced is True


class TestStaleness:
    """Tests for the trial balance stale flag."""

    @pytest.mark.asyncio
    async def test_new_company_is_stale(self, db_session, ctx):
        assert await TrialBalanceService(db_session).is_stale(ctx) is True

    @pytest.mark.asyncio
    async def test_read_clears_and_mutation_sets(self, db_session, ctx, post_entry):
        service = TrialBalanceService(db_session)

        first = await service.get_trial_balance(ctx, date(2025, 3, 31))
        assert first.was_stale is True
        assert await service.is_stale(ctx) is False

        second = await service.get_trial_balance(ctx, date(2025, 3, 31))
        assert second.was_stale is False

        await post_entry(date(2024, 5, 10), [("1230", "1000", "0"), ("4110", "0", "1000")])

        status = await service.get_status(ctx)
        assert status.is_stale is True
        assert status.marked_stale_at is not None
        assert status.computed_at is not None

    @pytest.mark.asyncio
    async def test_opening_balance_change_sets_flag(self, db_session, ctx, accounts):
        service = TrialBalanceService(db_session)
        await service.get_trial_balance(ctx, date(2025, 3, 31))
        chart = ChartOfAccountsService(db_session)

        await chart.update_account(ctx, accounts["1241"], AccountUpdate(name="Petty Cash"))
        assert await service.is_stale(ctx) is False

        await chart.update_account(ctx, accounts["1241"], AccountUpdate(opening_balance=Decimal("100")))
        assert await service.is_stale(ctx) is True

    @pytest.mark.asyncio
    async def test_posting_during_read_keeps_flag(self, db_session, ctx, post_entry, monkeypatch):
        service = TrialBalanceService(db_session)
        await service.get_trial_balance(ctx, date(2025, 3, 31))
        aggregate = service.aggregate_movements

        async def aggregate_then_post(*args, **kwargs):
            movements = await aggregate(*args, **kwargs)
            await post_entry(date(2024, 5, 10), [("1230", "1000", "0"), ("4110", "0", "1000")])
            return movements

        monkeypatch.setattr(service, "aggregate_movements", aggregate_then_post)
        report = await service.get_trial_balance(ctx, date(2025, 3, 31))

        assert row_for(report, "1230").period_debit == Decimal("0.00")
        assert await service.is_stale(ctx) is True

        monkeypatch.undo()
        refreshed = await service.get_trial_balance(ctx, date(2025, 3, 31))
        assert refreshed.was_stale is True
        assert row_for(refreshed, "1230").period_debit == Decimal("1000.00")
        assert await service.is_stale(ctx) is False

    @pytest.mark.asyncio
    async def test_failed_entry_keeps_flag(self, db_session, ctx, post_entry):
        service = TrialBalanceService(db_session)
        await service.get_trial_balance(ctx, date(2025, 3, 31))

        with pytest.raises(AccountIsGroupError):
            await post_entry(date(2024, 5, 10), [("1240", "1000", "0"), ("4110", "0", "1000")])

        assert await service.is_stale(ctx) is False


class TestAccountLedger:
    """Tests for the single-account ledger."""

    @pytest.mark.asyncio
    async def test_running_balance(self, db_session, ctx, accounts, trading_year):
        ledger = await TrialBalanceService(db_session).get_account_ledger(
            ctx, accounts["1242"], date(2025, 3, 31)
        )

        assert [line.balance for line in ledger.lines] == [
            Decimal("500000.00"),
            Decimal("470000.00"),
            Decimal("410000.00"),
            Decimal("460000.00"),
        ]
        assert all(line.balance_side == "Dr" for line in ledger.lines)
        assert ledger.opening_balance == Decimal("0.00")
        assert ledger.closing_balance == Decimal("460000.00")
        assert ledger.closing_side == "Dr"

    @pytest.mark.asyncio
    async def test_credit_balance_and_period_opening(self, db_session, ctx, accounts, trading_year):
        ledger = await TrialBalanceService(db_session).get_account_ledger(
            ctx, accounts["1230"], date(2025, 3, 31), from_date=date(2024, 6, 1)
        )

        assert ledger.opening_balance == Decimal("118000.00")
        assert ledger.opening_side == "Dr"
        assert len(ledger.lines) == 1
        assert ledger.closing_balance == Decimal("68000.00")

        equity = await TrialBalanceService(db_session).get_account_ledger(
            ctx, accounts["3110"], date(2025, 3, 31)
        )
        assert equity.closing_side == "Cr"
        assert equity.closing_balance == Decimal("500000.00")

    @pytest.mark.asyncio
    async def test_unknown_account(self, db_session, bare_ctx, accounts):
        with pytest.raises(AccountNotFoundError):
            await TrialBalanceService(db_session).get_account_ledger(bare_ctx, accounts["1242"], date(2025, 3, 31))
