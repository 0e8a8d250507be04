"""
LedgerCore - Fiscal Year Tests
"""

from datetime import date

import pytest

from ledgercore.schemas.accounting import FiscalYearCreate
from ledgercore.services.fiscal_year_service import FiscalYearService
from ledgercore.utils.error_handling import (
    ConflictException,
    ErrorCode,
    FiscalYearLockedError,
    FiscalYearNotFoundError,
    ValidationException,
)


def next_year(is_current=False):
    return FiscalYearCreate(
        name="FY 2025-26",
        start_date=date(2025, 4, 1),
        end_date=date(2026, 3, 31),
        is_current=is_current,
    )


class TestFiscalYears:
    """Tests for fiscal year definition."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, db_session, ctx, fiscal_year_id):
        service = FiscalYearService(db_session)
        await service.create_fiscal_year(ctx, next_year())

        years = await service.list_fiscal_years(ctx)

        assert [fy.name for fy in years] == ["FY 2025-26", "FY 2024-25"]
        assert years[1].short_name == "2024-25"

    @pytest.mark.asyncio
    async def test_start_after_end_rejected(self, db_session, ctx):
        with pytest.raises(ValidationException) as exc_info:
            await FiscalYearService(db_session).create_fiscal_year(
                ctx,
                FiscalYearCreate(name="FY Bad", start_date=date(2025, 3, 31), end_date=date(2024, 4, 1)),
            )

        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE

    @pytest.mark.asyncio
    async def test_overlap_rejected(self, db_session, ctx, fiscal_year_id):
        with pytest.raises(ValidationException) as exc_info:
            await FiscalYearService(db_session).create_fiscal_year(
                ctx,
                FiscalYearCreate(name="FY 2024 Calendar", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
            )

        assert exc_info.value.details["overlaps"] == "FY 2024-25"

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, db_session, ctx, fiscal_year_id):
        with pytest.raises(ConflictException):
            await FiscalYearService(db_session).create_fiscal_year(
                ctx,
                FiscalYearCreate(name="FY 2024-25", start_date=date(2030, 4, 1), end_date=date(2031, 3, 31)),
            )

    @pytest.mark.asyncio
    async def test_other_company_years_do_not_overlap(self, db_session, ctx, bare_ctx, fiscal_year_id):
        fiscal_year = await FiscalYearService(db_session).create_fiscal_year(
            bare_ctx,
            FiscalYearCreate(name="FY 2024-25", start_date=date(2024, 4, 1), end_date=date(2025, 3, 31)),
        )

        assert fiscal_year.company_id == bare_ctx.company_id

    @pytest.mark.asyncio
    async def test_only_one_current_year(self, db_session, ctx, fiscal_year_id):
        service = FiscalYearService(db_session)
        created = await service.create_fiscal_year(ctx, next_year(is_current=True))
        created_id = created.id

        current = await service.get_current_fiscal_year(ctx)
        assert current.id == created_id

        await service.set_current(ctx, fiscal_year_id)
        current = await service.get_current_fiscal_year(ctx)
        assert current.id == fiscal_year_id
        assert sum(1 for fy in await service.list_fiscal_years(ctx) if fy.is_current) == 1

    @pytest.mark.asyncio
    async def test_fiscal_year_for_date(self, db_session, ctx, fiscal_year_id):
        service = FiscalYearService(db_session)

        found = await service.get_fiscal_year_for_date(ctx, date(2024, 12, 25))
        assert found.id == fiscal_year_id
        assert await service.get_fiscal_year_for_date(ctx, date(2023, 12, 25)) is None

    @pytest.mark.asyncio
    async def test_get_unknown_year(self, db_session, bare_ctx, fiscal_year_id):
        with pytest.raises(FiscalYearNotFoundError):
            await FiscalYearService(db_session).get_fiscal_year(bare_ctx, fiscal_year_id)


class TestFiscalYearLock:
    """Tests for one-way locking."""

    @pytest.mark.asyncio
    async def test_lock_records_who_and_when(self, db_session, ctx, fiscal_year_id):
        fiscal_year = await FiscalYearService(db_session).lock_fiscal_year(ctx, fiscal_year_id)

        assert fiscal_year.is_locked is True
        assert fiscal_year.locked_by_id == ctx.user_id
        assert fiscal_year.locked_at is not None

    @pytest.mark.asyncio
    async def test_lock_twice_rejected(self, db_session, ctx, fiscal_year_id):
        service = FiscalYearService(db_session)
        await service.lock_fiscal_year(ctx, fiscal_year_id)

        with pytest.raises(FiscalYearLockedError):
            await service.lock_fiscal_year(ctx, fiscal_year_id)
