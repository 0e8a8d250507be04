"""
LedgerCore - Journal Service

The system of record for double-entry transactions:
- Balanced multi-line entries with sequential numbering per fiscal year
- draft -> posted lifecycle, reversal by a linked mirror entry
- Fiscal year locking enforced on every mutation
- Trial balance invalidation inside the same unit of work
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, update, insert
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.config import settings
from ledgercore.context import LedgerContext
from ledgercore.database import atomic
from ledgercore.models.accounting import (
    Account,
    FiscalYear,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalEntryType,
    JournalSequence,
)
from ledgercore.schemas.accounting import (
    JournalEntryCreate,
    JournalEntryLineCreate,
    JournalEntryUpdate,
)
from ledgercore.services.fiscal_year_service import FiscalYearService
from ledgercore.services.trial_balance_service import TrialBalanceService
from ledgercore.utils.error_handling import (
    AccountIsGroupError,
    AccountNotFoundError,
    AlreadyPostedError,
    AlreadyReversedError,
    BusinessRuleException,
    CannotEditPostedError,
    DateOutOfRangeError,
    DuplicateSourcePostingError,
    EntryNotFoundError,
    FiscalYearLockedError,
    InsufficientLinesError,
    InvalidFiscalYearError,
    NotPostedError,
    UnbalancedEntryError,
    ValidationException,
)
from ledgercore.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


class JournalService:
    """Service for journal entries."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.trial_balance = TrialBalanceService(db)
        self.fiscal_years = FiscalYearService(db)

    # =========================================================================
    # NUMBERING
    # =========================================================================

    async def _next_sequence_value(self, ctx: LedgerContext, fiscal_year: FiscalYear) -> int:
        """
        Bump the fiscal year's counter and return the new value.

        The UPDATE takes a row lock, so concurrent creators in the same year
        are serialised until the enclosing transaction ends.
        """
        result = await self.db.execute(
            update(JournalSequence)
            .where(
                and_(
                    JournalSequence.company_id == ctx.company_id,
                    JournalSequence.fiscal_year_id == fiscal_year.id,
                )
            )
            .values(last_value=JournalSequence.last_value + 1)
            .returning(JournalSequence.last_value)
            .execution_options(synchronize_session=False)
        )
        value = result.scalar_one_or_none()
        if value is not None:
            return value

        await self.db.execute(
            insert(JournalSequence).values(
                id=uuid.uuid4(),
                company_id=ctx.company_id,
                fiscal_year_id=fiscal_year.id,
                last_value=1,
            )
        )
        return 1

    async def _next_entry_number(self, ctx: LedgerContext, fiscal_year: FiscalYear) -> str:
        value = await self._next_sequence_value(ctx, fiscal_year)
        padding = settings.journal_sequence_padding
        return f"{settings.journal_number_prefix}/{fiscal_year.short_name}/{value:0{padding}d}"

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def _get_company_fiscal_year(
        self,
        ctx: LedgerContext,
        fiscal_year_id: uuid.UUID,
    ) -> FiscalYear:
        result = await self.db.execute(
            select(FiscalYear).where(
                and_(
                    FiscalYear.id == fiscal_year_id,
                    FiscalYear.company_id == ctx.company_id,
                )
            )
        )
        fiscal_year = result.scalar_one_or_none()
        if fiscal_year is None:
            raise InvalidFiscalYearError(fiscal_year_id)
        return fiscal_year

    @staticmethod
    def _check_open(fiscal_year: FiscalYear) -> None:
        if fiscal_year.is_locked:
            raise FiscalYearLockedError(fiscal_year.name)

    @staticmethod
    def _check_date(fiscal_year: FiscalYear, entry_date: date) -> None:
        if not fiscal_year.contains(entry_date):
            raise DateOutOfRangeError(entry_date, fiscal_year.start_date, fiscal_year.end_date)

    async def find_live_source_entry(
        self,
        ctx: LedgerContext,
        source_type: str,
        source_id: uuid.UUID,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[JournalEntry]:
        """Posted, unreversed, non-reversal entry for a source document."""
        conditions = [
            JournalEntry.company_id == ctx.company_id,
            JournalEntry.source_type == source_type,
            JournalEntry.source_id == source_id,
            JournalEntry.status == JournalEntryStatus.POSTED,
            JournalEntry.is_reversed == False,  # noqa: E712
            JournalEntry.entry_type != JournalEntryType.REVERSAL,
        ]
        if exclude_id is not None:
            conditions.append(JournalEntry.id != exclude_id)
        result = await self.db.execute(select(JournalEntry).where(and_(*conditions)))
        return result.scalars().first()

    async def _check_source_free(
        self,
        ctx: LedgerContext,
        source_type: Optional[str],
        source_id: Optional[uuid.UUID],
        entry_type: JournalEntryType,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        # One live posted entry per source document
        if source_id is None or entry_type == JournalEntryType.REVERSAL:
            return
        existing = await self.find_live_source_entry(ctx, source_type, source_id, exclude_id)
        if existing:
            raise DuplicateSourcePostingError(source_type, source_id, existing.entry_number)

    async def _validate_lines(
        self,
        ctx: LedgerContext,
        lines: List[JournalEntryLineCreate],
    ) -> Tuple[Decimal, Decimal]:
        """
        Check line count, each line, and the debit/credit balance.

        Returns the quantised (total_debit, total_credit).
        """
        if len(lines) < 2:
            raise InsufficientLinesError(len(lines))

        account_ids = {line.account_id for line in lines}
        result = await self.db.execute(
            select(Account).where(
                and_(
                    Account.company_id == ctx.company_id,
                    Account.id.in_(account_ids),
                )
            )
        )
        accounts: Dict[uuid.UUID, Account] = {a.id: a for a in result.scalars().all()}

        total_debit = ZERO
        total_credit = ZERO
        for index, line in enumerate(lines):
            debit = to_money(line.debit_amount)
            credit = to_money(line.credit_amount)

            if debit < 0 or credit < 0:
                raise ValidationException(
                    message=f"Line {index + 1}: amounts cannot be negative",
                    field=f"lines.{index}",
                )
            if debit == 0 and credit == 0:
                raise ValidationException(
                    message=f"Line {index + 1}: debit or credit amount is required",
                    field=f"lines.{index}",
                )

            account = accounts.get(line.account_id)
            if account is None:
                raise AccountNotFoundError(line.account_id)
            if account.is_group:
                raise AccountIsGroupError(account.id, account.code)
            if not account.is_active:
                raise ValidationException(
                    message=f"Account {account.code} is inactive and cannot receive postings",
                    field=f"lines.{index}.account_id",
                )

            total_debit += debit
            total_credit += credit

        if abs(total_debit - total_credit) > settings.balance_tolerance:
            raise UnbalancedEntryError(total_debit, total_credit)

        return total_debit, total_credit

    @staticmethod
    def _build_lines(lines: List[JournalEntryLineCreate]) -> List[JournalEntryLine]:
        return [
            JournalEntryLine(
                account_id=line.account_id,
                description=line.description,
                debit_amount=to_money(line.debit_amount),
                credit_amount=to_money(line.credit_amount),
                party_type=line.party_type,
                party_id=line.party_id,
                cost_center_id=line.cost_center_id,
                sort_order=index,
            )
            for index, line in enumerate(lines)
        ]

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_entry(self, ctx: LedgerContext, entry_id: uuid.UUID) -> JournalEntry:
        result = await self.db.execute(
            select(JournalEntry).where(
                and_(
                    JournalEntry.id == entry_id,
                    JournalEntry.company_id == ctx.company_id,
                )
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    async def list_entries(
        self,
        ctx: LedgerContext,
        fiscal_year_id: Optional[uuid.UUID] = None,
        status: Optional[JournalEntryStatus] = None,
        entry_type: Optional[JournalEntryType] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        source_type: Optional[str] = None,
        source_id: Optional[uuid.UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[JournalEntry], int]:
        """Get journal entries with filters. Returns (entries, total count)."""
        conditions = [JournalEntry.company_id == ctx.company_id]

        if fiscal_year_id:
            conditions.append(JournalEntry.fiscal_year_id == fiscal_year_id)
        if status:
            conditions.append(JournalEntry.status == status)
        if entry_type:
            conditions.append(JournalEntry.entry_type == entry_type)
        if from_date:
            conditions.append(JournalEntry.entry_date >= from_date)
        if to_date:
            conditions.append(JournalEntry.entry_date <= to_date)
        if source_type:
            conditions.append(JournalEntry.source_type == source_type)
        if source_id:
            conditions.append(JournalEntry.source_id == source_id)

        count_result = await self.db.execute(
            select(func.count(JournalEntry.id)).where(and_(*conditions))
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(JournalEntry)
            .where(and_(*conditions))
            .order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def create_entry(self, ctx: LedgerContext, data: JournalEntryCreate) -> JournalEntry:
        """
        Create a journal entry (draft or posted).

        Header, lines, the sequence bump and the stale flag are written in one
        transaction; any failure leaves nothing behind.
        """
        async with atomic(self.db):
            fiscal_year = await self._get_company_fiscal_year(ctx, data.fiscal_year_id)
            self._check_open(fiscal_year)
            self._check_date(fiscal_year, data.entry_date)
            total_debit, total_credit = await self._validate_lines(ctx, data.lines)
            is_posted = data.status == JournalEntryStatus.POSTED
            if is_posted:
                await self._check_source_free(ctx, data.source_type, data.source_id, data.entry_type)

            entry_number = await self._next_entry_number(ctx, fiscal_year)

            entry = JournalEntry(
                id=uuid.uuid4(),
                company_id=ctx.company_id,
                fiscal_year_id=fiscal_year.id,
                entry_number=entry_number,
                entry_date=data.entry_date,
                posting_date=data.entry_date if is_posted else None,
                entry_type=data.entry_type,
                narration=data.narration,
                reference_number=data.reference_number,
                source_type=data.source_type,
                source_id=data.source_id,
                total_debit=total_debit,
                total_credit=total_credit,
                status=data.status,
                created_by_id=ctx.user_id,
                updated_by_id=ctx.user_id,
            )
            entry.lines = self._build_lines(data.lines)
            self.db.add(entry)
            await self.db.flush()

            await self.trial_balance.mark_stale(ctx)

        logger.info(
            f"Journal entry {entry.entry_number} created ({entry.status.value}) "
            f"for company {ctx.company_id}: Dr {total_debit} / Cr {total_credit}"
        )
        return entry

    async def post_entry(self, ctx: LedgerContext, entry_id: uuid.UUID) -> JournalEntry:
        """Move a draft entry to posted."""
        async with atomic(self.db):
            entry = await self.get_entry(ctx, entry_id)
            if entry.is_posted:
                raise AlreadyPostedError(entry.entry_number)

            fiscal_year = await self._get_company_fiscal_year(ctx, entry.fiscal_year_id)
            self._check_open(fiscal_year)

            await self._check_source_free(
                ctx, entry.source_type, entry.source_id, entry.entry_type, exclude_id=entry.id
            )

            entry.status = JournalEntryStatus.POSTED
            entry.posting_date = entry.entry_date
            entry.updated_by_id = ctx.user_id
            await self.db.flush()

            await self.trial_balance.mark_stale(ctx)

        logger.info(f"Journal entry {entry.entry_number} posted for company {ctx.company_id}")
        return entry

    async def reverse_entry(
        self,
        ctx: LedgerContext,
        entry_id: uuid.UUID,
        reversal_date: Optional[date] = None,
        narration: Optional[str] = None,
    ) -> JournalEntry:
        """
        Reverse a posted entry.

        Creates a posted mirror entry with every line's sides swapped and
        links the two. The original stays posted but can no longer be
        reversed again.
        """
        async with atomic(self.db):
            original = await self.get_entry(ctx, entry_id)
            if not original.is_posted:
                raise NotPostedError(original.entry_number)
            if original.is_reversed:
                raise AlreadyReversedError(original.entry_number)
            if original.entry_type == JournalEntryType.REVERSAL:
                raise BusinessRuleException(
                    message=f"Entry {original.entry_number} is itself a reversal and cannot be reversed",
                    rule="SINGLE_REVERSAL",
                    details={"entry_number": original.entry_number},
                )

            reversal_date = reversal_date or original.entry_date
            original_year = await self._get_company_fiscal_year(ctx, original.fiscal_year_id)
            if original_year.contains(reversal_date):
                fiscal_year = original_year
            else:
                fiscal_year = await self.fiscal_years.get_fiscal_year_for_date(ctx, reversal_date)
                if fiscal_year is None:
                    raise DateOutOfRangeError(
                        reversal_date, original_year.start_date, original_year.end_date
                    )
            self._check_open(fiscal_year)

            entry_number = await self._next_entry_number(ctx, fiscal_year)

            reversal = JournalEntry(
                id=uuid.uuid4(),
                company_id=ctx.company_id,
                fiscal_year_id=fiscal_year.id,
                entry_number=entry_number,
                entry_date=reversal_date,
                posting_date=reversal_date,
                entry_type=JournalEntryType.REVERSAL,
                narration=narration or f"Reversal of {original.entry_number}",
                reference_number=original.entry_number,
                source_type=original.source_type,
                source_id=original.source_id,
                total_debit=original.total_credit,
                total_credit=original.total_debit,
                status=JournalEntryStatus.POSTED,
                reversed_entry_id=original.id,
                created_by_id=ctx.user_id,
                updated_by_id=ctx.user_id,
            )
            reversal.lines = [
                JournalEntryLine(
                    account_id=line.account_id,
                    description=f"Reversal: {line.description or ''}",
                    debit_amount=line.credit_amount,
                    credit_amount=line.debit_amount,
                    party_type=line.party_type,
                    party_id=line.party_id,
                    cost_center_id=line.cost_center_id,
                    sort_order=line.sort_order,
                )
                for line in original.lines
            ]
            self.db.add(reversal)
            await self.db.flush()

            original.is_reversed = True
            original.reversed_entry_id = reversal.id
            original.updated_by_id = ctx.user_id
            await self.db.flush()

            await self.trial_balance.mark_stale(ctx)

        logger.info(
            f"Journal entry {original.entry_number} reversed by {reversal.entry_number} "
            f"for company {ctx.company_id}"
        )
        return reversal

    async def update_entry(
        self,
        ctx: LedgerContext,
        entry_id: uuid.UUID,
        data: JournalEntryUpdate,
    ) -> JournalEntry:
        """
        Update a draft entry.

        A supplied line set replaces every existing line and is validated
        like a new entry.
        """
        async with atomic(self.db):
            entry = await self.get_entry(ctx, entry_id)
            fiscal_year = await self._get_company_fiscal_year(ctx, entry.fiscal_year_id)
            self._check_open(fiscal_year)
            if entry.is_posted:
                raise CannotEditPostedError(entry.entry_number)

            changes = data.model_dump(exclude_unset=True, exclude={"lines"})

            if changes.get("entry_date"):
                self._check_date(fiscal_year, changes["entry_date"])
                entry.entry_date = changes["entry_date"]
            if "narration" in changes:
                entry.narration = changes["narration"]
            if "reference_number" in changes:
                entry.reference_number = changes["reference_number"]

            if data.lines is not None:
                total_debit, total_credit = await self._validate_lines(ctx, data.lines)
                entry.lines.clear()
                await self.db.flush()
                entry.lines.extend(self._build_lines(data.lines))
                entry.total_debit = total_debit
                entry.total_credit = total_credit

            if changes.get("status") == JournalEntryStatus.POSTED:
                await self._check_source_free(
                    ctx, entry.source_type, entry.source_id, entry.entry_type, exclude_id=entry.id
                )
                entry.status = JournalEntryStatus.POSTED
                entry.posting_date = entry.entry_date

            entry.updated_by_id = ctx.user_id
            await self.db.flush()

            await self.trial_balance.mark_stale(ctx)

        logger.info(f"Journal entry {entry.entry_number} updated for company {ctx.company_id}")
        return entry

    async def delete_entry(self, ctx: LedgerContext, entry_id: uuid.UUID) -> None:
        """Delete a draft entry."""
        async with atomic(self.db):
            entry = await self.get_entry(ctx, entry_id)
            fiscal_year = await self._get_company_fiscal_year(ctx, entry.fiscal_year_id)
            self._check_open(fiscal_year)
            if entry.is_posted:
                raise CannotEditPostedError(entry.entry_number)

            entry_number = entry.entry_number
            await self.db.delete(entry)
            await self.db.flush()

            await self.trial_balance.mark_stale(ctx)

        logger.info(f"Journal entry {entry_number} deleted for company {ctx.company_id}")
