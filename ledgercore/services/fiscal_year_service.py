"""
LedgerCore - Fiscal Year Service

Fiscal year definition, current-year selection and one-way locking.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import select, and_, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.database import atomic
from ledgercore.models.accounting import FiscalYear, JournalSequence
from ledgercore.models.base import utcnow
from ledgercore.schemas.accounting import FiscalYearCreate
from ledgercore.utils.error_handling import (
    ConflictException,
    ErrorCode,
    FiscalYearLockedError,
    FiscalYearNotFoundError,
    ValidationException,
)

logger = logging.getLogger(__name__)


class FiscalYearService:
    """Service for fiscal years."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_fiscal_year(self, ctx: LedgerContext, data: FiscalYearCreate) -> FiscalYear:
        """
        Create a fiscal year and its entry number counter.

        Years of one company may not overlap; marking the new year current
        clears the flag on every other year.
        """
        if data.start_date >= data.end_date:
            raise ValidationException(
                message="Fiscal year start date must be before its end date",
                field="end_date",
                code=ErrorCode.INVALID_DATE_RANGE,
            )

        async with atomic(self.db):
            existing = await self.db.execute(
                select(FiscalYear).where(
                    and_(
                        FiscalYear.company_id == ctx.company_id,
                        FiscalYear.name == data.name,
                    )
                )
            )
            if existing.scalar_one_or_none():
                raise ConflictException(
                    message=f"Fiscal year '{data.name}' already exists",
                    resource_type="FiscalYear",
                    code=ErrorCode.DUPLICATE_ENTRY,
                )

            overlap = await self.db.execute(
                select(FiscalYear).where(
                    and_(
                        FiscalYear.company_id == ctx.company_id,
                        FiscalYear.start_date <= data.end_date,
                        FiscalYear.end_date >= data.start_date,
                    )
                )
            )
            clash = overlap.scalars().first()
            if clash:
                raise ValidationException(
                    message=f"Fiscal year overlaps with {clash.name}",
                    field="start_date",
                    code=ErrorCode.INVALID_DATE_RANGE,
                    details={"overlaps": clash.name},
                )

            if data.is_current:
                await self._clear_current(ctx)

            fiscal_year = FiscalYear(
                id=uuid.uuid4(),
                company_id=ctx.company_id,
                name=data.name,
                start_date=data.start_date,
                end_date=data.end_date,
                is_current=data.is_current,
                created_by_id=ctx.user_id,
                updated_by_id=ctx.user_id,
            )
            self.db.add(fiscal_year)
            await self.db.flush()

            self.db.add(JournalSequence(
                company_id=ctx.company_id,
                fiscal_year_id=fiscal_year.id,
                last_value=0,
            ))
            await self.db.flush()

        logger.info(f"Fiscal year {fiscal_year.name} created for company {ctx.company_id}")
        return fiscal_year

    async def list_fiscal_years(self, ctx: LedgerContext) -> List[FiscalYear]:
        result = await self.db.execute(
            select(FiscalYear)
            .where(FiscalYear.company_id == ctx.company_id)
            .order_by(FiscalYear.start_date.desc())
        )
        return list(result.scalars().all())

    async def get_fiscal_year(self, ctx: LedgerContext, fiscal_year_id: uuid.UUID) -> FiscalYear:
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
            raise FiscalYearNotFoundError(fiscal_year_id)
        return fiscal_year

    async def get_current_fiscal_year(self, ctx: LedgerContext) -> Optional[FiscalYear]:
        result = await self.db.execute(
            select(FiscalYear).where(
                and_(
                    FiscalYear.company_id == ctx.company_id,
                    FiscalYear.is_current == True,  # noqa: E712
                )
            )
        )
        return result.scalars().first()

    async def get_fiscal_year_for_date(self, ctx: LedgerContext, value: date) -> Optional[FiscalYear]:
        """Fiscal year whose range contains the date, if any."""
        result = await self.db.execute(
            select(FiscalYear).where(
                and_(
                    FiscalYear.company_id == ctx.company_id,
                    FiscalYear.start_date <= value,
                    FiscalYear.end_date >= value,
                )
            )
        )
        return result.scalars().first()

    async def set_current(self, ctx: LedgerContext, fiscal_year_id: uuid.UUID) -> FiscalYear:
        async with atomic(self.db):
            fiscal_year = await self.get_fiscal_year(ctx, fiscal_year_id)
            await self._clear_current(ctx)
            fiscal_year.is_current = True
            fiscal_year.updated_by_id = ctx.user_id
            await self.db.flush()
        return fiscal_year

    async def lock_fiscal_year(self, ctx: LedgerContext, fiscal_year_id: uuid.UUID) -> FiscalYear:
        """Lock a fiscal year. There is no unlock."""
        async with atomic(self.db):
            fiscal_year = await self.get_fiscal_year(ctx, fiscal_year_id)
            if fiscal_year.is_locked:
                raise FiscalYearLockedError(fiscal_year.name)

            fiscal_year.is_locked = True
            fiscal_year.locked_at = utcnow()
            fiscal_year.locked_by_id = ctx.user_id
            fiscal_year.updated_by_id = ctx.user_id
            await self.db.flush()

        logger.info(f"Fiscal year {fiscal_year.name} locked for company {ctx.company_id} by {ctx.user_id}")
        return fiscal_year

    async def _clear_current(self, ctx: LedgerContext) -> None:
        await self.db.execute(
            update(FiscalYear)
            .where(
                and_(
                    FiscalYear.company_id == ctx.company_id,
                    FiscalYear.is_current == True,  # noqa: E712
                )
            )
            .values(is_current=False)
            .execution_options(synchronize_session="fetch")
        )
