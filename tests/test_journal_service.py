"""
LedgerCore - Journal Service Tests

Tests for journal entry creation, numbering, posting, editing and reversal.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledgercore.models.accounting import JournalEntryStatus, JournalEntryType
from ledgercore.schemas.accounting import (
    FiscalYearCreate,
    JournalEntryCreate,
    JournalEntryLineCreate,
    JournalEntryUpdate,
)
from ledgercore.services.fiscal_year_service import FiscalYearService
from ledgercore.services.journal_service import JournalService
from ledgercore.utils.error_handling import (
    AccountIsGroupError,
    AccountNotFoundError,
    AlreadyPostedError,
    AlreadyReversedError,
    BusinessRuleException,
    CannotEditPostedError,
    DateOutOfRangeError,
    EntryNotFoundError,
    ErrorCode,
    FiscalYearLockedError,
    InsufficientLinesError,
    InvalidFiscalYearError,
    NotPostedError,
    UnbalancedEntryError,
    ValidationException,
)


SALE = [("1230", "118000", "0"), ("4110", "0", "100000"), ("2231", "0", "18000")]


class TestCreateEntry:
    """Tests for creating journal entries."""

    @pytest.mark.asyncio
    async def test_create_draft_entry(self, db_session, ctx, build_entry):
        """A draft entry keeps its lines in order and totals both sides."""
        entry = await JournalService(db_session).create_entry(
            ctx, build_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)
        )

        assert entry.status == JournalEntryStatus.DRAFT
        assert entry.posting_date is None
        assert entry.total_debit == Decimal("118000.00")
        assert entry.total_credit == Decimal("118000.00")
        assert [line.sort_order for line in entry.lines] == [0, 1, 2]
        assert entry.created_by_id == ctx.user_id

    @pytest.mark.asyncio
    async def test_create_posted_entry_sets_posting_date(self, post_entry):
        entry = await post_entry(date(2024, 5, 10), SALE)

        assert entry.status == JournalEntryStatus.POSTED
        assert entry.posting_date == date(2024, 5, 10)

    @pytest.mark.asyncio
    async def test_entry_numbers_are_sequential_per_fiscal_year(self, post_entry):
        first = await post_entry(date(2024, 5, 10), SALE)
        second = await post_entry(date(2024, 5, 11), SALE)
        third = await post_entry(date(2024, 4, 2), SALE)

        assert first.entry_number == "JV/2024-25/0001"
        assert second.entry_number == "JV/2024-25/0002"
        # Numbers follow creation order, not entry date
        assert third.entry_number == "JV/2024-25/0003"

    @pytest.mark.asyncio
    async def test_failed_entry_does_not_consume_a_number(self, post_entry):
        with pytest.raises(UnbalancedEntryError):
            await post_entry(date(2024, 5, 10), [("1230", "100", "0"), ("4110", "0", "90")])

        entry = await post_entry(date(2024, 5, 10), SALE)
        assert entry.entry_number == "JV/2024-25/0001"

    @pytest.mark.asyncio
    async def test_numbering_restarts_in_each_fiscal_year(self, db_session, ctx, post_entry, fiscal_year_id):
        next_year = await FiscalYearService(db_session).create_fiscal_year(
            ctx,
            FiscalYearCreate(name="FY 2025-26", start_date=date(2025, 4, 1), end_date=date(2026, 3, 31)),
        )
        next_year_id = next_year.id

        await post_entry(date(2024, 5, 10), SALE)
        entry = await post_entry(date(2025, 5, 10), SALE, fiscal_year=next_year_id)

        assert entry.entry_number == "JV/2025-26/0001"
        assert entry.fiscal_year_id == next_year_id

    @pytest.mark.asyncio
    async def test_unbalanced_entry_rejected(self, post_entry):
        with pytest.raises(UnbalancedEntryError) as exc_info:
            await post_entry(date(2024, 5, 10), [("1230", "1000", "0"), ("4110", "0", "900")])

        assert exc_info.value.code == ErrorCode.UNBALANCED_ENTRY
        assert exc_info.value.details["difference"] == "100.00"

    @pytest.mark.asyncio
    async def test_difference_within_tolerance_accepted(self, post_entry):
        entry = await post_entry(date(2024, 5, 10), [("1230", "100.01", "0"), ("4110", "0", "100.00")])

        assert entry.total_debit - entry.total_credit == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_difference_beyond_tolerance_rejected(self, post_entry):
        with pytest.raises(UnbalancedEntryError):
            await post_entry(date(2024, 5, 10), [("1230", "100.02", "0"), ("4110", "0", "100.00")])

    @pytest.mark.asyncio
    async def test_single_line_rejected(self, post_entry):
        with pytest.raises(InsufficientLinesError):
            await post_entry(date(2024, 5, 10), [("1230", "100", "0")])

    @pytest.mark.asyncio
    async def test_zero_line_rejected(self, post_entry):
        with pytest.raises(ValidationException) as exc_info:
            await post_entry(
                date(2024, 5, 10),
                [("1230", "100", "0"), ("4110", "0", "100"), ("4120", "0", "0")],
            )

        assert exc_info.value.field == "lines.2"

    @pytest.mark.asyncio
    async def test_line_with_both_sides_accepted(self, post_entry):
        entry = await post_entry(date(2024, 5, 10), [("1230", "150", "50"), ("4110", "0", "100")])

        assert entry.total_debit == Decimal("150.00")
        assert entry.total_credit == Decimal("150.00")

    @pytest.mark.asyncio
    async def test_group_account_rejected(self, post_entry):
        # 1240 Cash and Cash Equivalents has children
        with pytest.raises(AccountIsGroupError):
            await post_entry(date(2024, 5, 10), [("1240", "100", "0"), ("4110", "0", "100")])

    @pytest.mark.asyncio
    async def test_account_of_another_company_rejected(self, db_session, ctx, bare_ctx, accounts):
        other_year = await FiscalYearService(db_session).create_fiscal_year(
            bare_ctx,
            FiscalYearCreate(name="FY 2024-25", start_date=date(2024, 4, 1), end_date=date(2025, 3, 31)),
        )
        data = JournalEntryCreate(
            fiscal_year_id=other_year.id,
            entry_date=date(2024, 5, 10),
            lines=[
                JournalEntryLineCreate(account_id=accounts["1230"], debit_amount=Decimal("1")),
                JournalEntryLineCreate(account_id=accounts["4110"], credit_amount=Decimal("1")),
            ],
        )

        with pytest.raises(AccountNotFoundError):
            await JournalService(db_session).create_entry(bare_ctx, data)

    @pytest.mark.asyncio
    async def test_unknown_fiscal_year_rejected(self, db_session, ctx, accounts):
        data = JournalEntryCreate(
            fiscal_year_id="00000000-0000-0000-0000-000000000001",
            entry_date=date(2024, 5, 10),
            lines=[
                JournalEntryLineCreate(account_id=accounts["1230"], debit_amount=Decimal("1")),
                JournalEntryLineCreate(account_id=accounts["4110"], credit_amount=Decimal("1")),
            ],
        )

        with pytest.raises(InvalidFiscalYearError):
            await JournalService(db_session).create_entry(ctx, data)

    @pytest.mark.asyncio
    async def test_date_outside_fiscal_year_rejected(self, post_entry):
        with pytest.raises(DateOutOfRangeError):
            await post_entry(date(2025, 4, 1), SALE)

    @pytest.mark.asyncio
    async def test_locked_fiscal_year_rejects_new_entries(self, db_session, ctx, post_entry, fiscal_year_id):
        await FiscalYearService(db_session).lock_fiscal_year(ctx, fiscal_year_id)

        with pytest.raises(FiscalYearLockedError):
            await post_entry(date(2024, 5, 10), SALE)

    @pytest.mark.asyncio
    async def test_failed_entry_leaves_nothing_behind(self, db_session, ctx, post_entry):
        with pytest.raises(AccountIsGroupError):
            await post_entry(date(2024, 5, 10), [("1230", "100", "0"), ("1240", "0", "100")])

        entries, total = await JournalService(db_session).list_entries(ctx)
        assert entries == []
        assert total == 0


class TestPostAndEdit:
    """Tests for the draft -> posted lifecycle."""

    @pytest.mark.asyncio
    async def test_post_draft(self, db_session, ctx, post_entry):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)

        posted = await JournalService(db_session).post_entry(ctx, draft.id)

        assert posted.status == JournalEntryStatus.POSTED
        assert posted.posting_date == date(2024, 5, 10)

    @pytest.mark.asyncio
    async def test_post_twice_rejected(self, db_session, ctx, post_entry):
        entry = await post_entry(date(2024, 5, 10), SALE)

        with pytest.raises(AlreadyPostedError):
            await JournalService(db_session).post_entry(ctx, entry.id)

    @pytest.mark.asyncio
    async def test_update_draft_replaces_lines(self, db_session, ctx, post_entry, accounts):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)

        updated = await JournalService(db_session).update_entry(
            ctx,
            draft.id,
            JournalEntryUpdate(
                narration="Corrected sale",
                lines=[
                    JournalEntryLineCreate(account_id=accounts["1230"], debit_amount=Decimal("500")),
                    JournalEntryLineCreate(account_id=accounts["4120"], credit_amount=Decimal("500")),
                ],
            ),
        )

        assert updated.narration == "Corrected sale"
        assert len(updated.lines) == 2
        assert updated.total_debit == Decimal("500.00")
        assert updated.lines[1].account_id == accounts["4120"]

    @pytest.mark.asyncio
    async def test_update_can_post(self, db_session, ctx, post_entry):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)

        updated = await JournalService(db_session).update_entry(
            ctx, draft.id, JournalEntryUpdate(entry_date=date(2024, 5, 12), status=JournalEntryStatus.POSTED)
        )

        assert updated.status == JournalEntryStatus.POSTED
        assert updated.posting_date == date(2024, 5, 12)

    @pytest.mark.asyncio
    async def test_update_posted_rejected(self, db_session, ctx, post_entry):
        entry = await post_entry(date(2024, 5, 10), SALE)

        with pytest.raises(CannotEditPostedError):
            await JournalService(db_session).update_entry(ctx, entry.id, JournalEntryUpdate(narration="Changed"))

    @pytest.mark.asyncio
    async def test_delete_draft(self, db_session, ctx, post_entry):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)
        draft_id = draft.id
        service = JournalService(db_session)

        await service.delete_entry(ctx, draft_id)

        with pytest.raises(EntryNotFoundError):
            await service.get_entry(ctx, draft_id)

    @pytest.mark.asyncio
    async def test_delete_posted_rejected(self, db_session, ctx, post_entry):
        entry = await post_entry(date(2024, 5, 10), SALE)

        with pytest.raises(CannotEditPostedError):
            await JournalService(db_session).delete_entry(ctx, entry.id)

    @pytest.mark.asyncio
    async def test_locked_year_blocks_posting_drafts(self, db_session, ctx, post_entry, fiscal_year_id):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)
        draft_id = draft.id
        await FiscalYearService(db_session).lock_fiscal_year(ctx, fiscal_year_id)

        with pytest.raises(FiscalYearLockedError):
            await JournalService(db_session).post_entry(ctx, draft_id)

    @pytest.mark.asyncio
    async def test_locked_year_blocks_editing_drafts(self, db_session, ctx, post_entry, fiscal_year_id):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)
        draft_id = draft.id
        await FiscalYearService(db_session).lock_fiscal_year(ctx, fiscal_year_id)
        service = JournalService(db_session)

        with pytest.raises(FiscalYearLockedError):
            await service.update_entry(ctx, draft_id, JournalEntryUpdate(narration="Changed"))

        unchanged = await service.get_entry(ctx, draft_id)
        assert unchanged.narration == "Test entry"
        assert unchanged.status == JournalEntryStatus.DRAFT

    @pytest.mark.asyncio
    async def test_locked_year_blocks_deleting_drafts(self, db_session, ctx, post_entry, fiscal_year_id):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)
        draft_id = draft.id
        await FiscalYearService(db_session).lock_fiscal_year(ctx, fiscal_year_id)
        service = JournalService(db_session)

        with pytest.raises(FiscalYearLockedError):
            await service.delete_entry(ctx, draft_id)

        assert (await service.get_entry(ctx, draft_id)).id == draft_id

    @pytest.mark.asyncio
    async def test_list_entries_filters_and_orders(self, db_session, ctx, post_entry):
        await post_entry(date(2024, 5, 10), SALE)
        await post_entry(date(2024, 6, 10), SALE, status=JournalEntryStatus.DRAFT)
        await post_entry(date(2024, 7, 10), SALE)
        service = JournalService(db_session)

        entries, total = await service.list_entries(ctx)
        assert total == 3
        assert [e.entry_date for e in entries] == [date(2024, 7, 10), date(2024, 6, 10), date(2024, 5, 10)]

        posted, posted_total = await service.list_entries(ctx, status=JournalEntryStatus.POSTED)
        assert posted_total == 2

        page, page_total = await service.list_entries(ctx, limit=1, offset=1)
        assert page_total == 3
        assert page[0].entry_date == date(2024, 6, 10)


class TestReverseEntry:
    """Tests for reversing posted entries."""

    @pytest.mark.asyncio
    async def test_reversal_mirrors_original(self, db_session, ctx, post_entry):
        original = await post_entry(date(2024, 5, 10), SALE)

        reversal = await JournalService(db_session).reverse_entry(ctx, original.id)

        assert reversal.entry_type == JournalEntryType.REVERSAL
        assert reversal.status == JournalEntryStatus.POSTED
        assert reversal.entry_date == date(2024, 5, 10)
        assert reversal.reversed_entry_id == original.id
        assert reversal.reference_number == original.entry_number
        assert reversal.narration == f"Reversal of {original.entry_number}"
        assert original.is_reversed is True
        assert original.reversed_entry_id == reversal.id
        assert original.status == JournalEntryStatus.POSTED

        for before, after in zip(original.lines, reversal.lines):
            assert after.account_id == before.account_id
            assert after.debit_amount == before.credit_amount
            assert after.credit_amount == before.debit_amount

    @pytest.mark.asyncio
    async def test_reverse_twice_rejected(self, db_session, ctx, post_entry):
        original = await post_entry(date(2024, 5, 10), SALE)
        service = JournalService(db_session)
        await service.reverse_entry(ctx, original.id)

        with pytest.raises(AlreadyReversedError):
            await service.reverse_entry(ctx, original.id)

    @pytest.mark.asyncio
    async def test_reverse_a_reversal_rejected(self, db_session, ctx, post_entry):
        original = await post_entry(date(2024, 5, 10), SALE)
        service = JournalService(db_session)
        reversal = await service.reverse_entry(ctx, original.id)

        with pytest.raises(BusinessRuleException):
            await service.reverse_entry(ctx, reversal.id)

    @pytest.mark.asyncio
    async def test_reverse_draft_rejected(self, db_session, ctx, post_entry):
        draft = await post_entry(date(2024, 5, 10), SALE, status=JournalEntryStatus.DRAFT)

        with pytest.raises(NotPostedError):
            await JournalService(db_session).reverse_entry(ctx, draft.id)

    @pytest.mark.asyncio
    async def test_reversal_dated_in_next_year_is_numbered_there(self, db_session, ctx, post_entry):
        original = await post_entry(date(2025, 3, 20), SALE)
        await FiscalYearService(db_session).create_fiscal_year(
            ctx,
            FiscalYearCreate(name="FY 2025-26", start_date=date(2025, 4, 1), end_date=date(2026, 3, 31)),
        )

        reversal = await JournalService(db_session).reverse_entry(
            ctx, original.id, reversal_date=date(2025, 4, 2), narration="Invoice cancelled"
        )

        assert reversal.entry_number == "JV/2025-26/0001"
        assert reversal.narration == "Invoice cancelled"

    @pytest.mark.asyncio
    async def test_reversal_date_outside_any_year_rejected(self, db_session, ctx, post_entry):
        original = await post_entry(date(2024, 5, 10), SALE)

        with pytest.raises(DateOutOfRangeError):
            await JournalService(db_session).reverse_entry(ctx, original.id, reversal_date=date(2030, 1, 1))

    @pytest.mark.asyncio
    async def test_reversal_into_locked_year_rejected(self, db_session, ctx, post_entry, fiscal_year_id):
        original = await post_entry(date(2024, 5, 10), SALE)
        original_id = original.id
        await FiscalYearService(db_session).lock_fiscal_year(ctx, fiscal_year_id)

        with pytest.raises(FiscalYearLockedError):
            await JournalService(db_session).reverse_entry(ctx, original_id)
