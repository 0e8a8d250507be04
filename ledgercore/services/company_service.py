"""
LedgerCore - Company Service

Business logic for the tenant registry.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.database import atomic
from ledgercore.models.accounting import TrialBalanceCache
from ledgercore.models.company import Company
from ledgercore.schemas.accounting import CompanyCreate
from ledgercore.services.chart_of_accounts_service import ChartOfAccountsService
from ledgercore.services.schedule_catalog import seed_schedule_mappings
from ledgercore.utils.error_handling import CompanyNotFoundError

logger = logging.getLogger(__name__)


class CompanyService:
    """Service for company operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_company(self, company_id: uuid.UUID) -> Company:
        company = await self.db.get(Company, company_id)
        if company is None:
            raise CompanyNotFoundError(company_id)
        return company

    async def create_company(self, data: CompanyCreate, user_id: Optional[uuid.UUID] = None) -> Company:
        """
        Create a company with its trial balance flag and mapping catalog.

        Optionally seeds the default chart of accounts in the same transaction.
        """
        async with atomic(self.db):
            company = Company(
                id=uuid.uuid4(),
                name=data.name,
                gaap_standard=data.gaap_standard,
                base_currency=data.base_currency.upper(),
            )
            self.db.add(company)
            await self.db.flush()

            self.db.add(TrialBalanceCache(company_id=company.id, is_stale=True))
            await seed_schedule_mappings(self.db, company.gaap_standard)

            if data.with_default_chart:
                ctx = LedgerContext(company_id=company.id, user_id=user_id)
                await ChartOfAccountsService(self.db).seed_default_chart(ctx)

            await self.db.flush()

        logger.info(f"Company {company.name} ({company.id}) created")
        return company
