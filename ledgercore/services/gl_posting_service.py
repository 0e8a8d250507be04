"""
LedgerCore - GL Posting Service

Entry point for producing modules (invoices, bills, expenses, payments,
credit/debit notes) that record their accounting impact in the ledger.
"""

import logging
import uuid
from datetime import date
from typing import Dict, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.models.accounting import (
    Account,
    JournalEntry,
    JournalEntryStatus,
)
from ledgercore.schemas.accounting import (
    GLPostingRequest,
    JournalEntryCreate,
    JournalEntryLineCreate,
)
from ledgercore.services.journal_service import JournalService
from ledgercore.utils.error_handling import (
    EntryNotFoundError,
    InvalidFiscalYearError,
    MissingSystemAccountError,
)

logger = logging.getLogger(__name__)


class GLPostingService:
    """Posts and reverses the ledger impact of business documents."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.journal = JournalService(db)

    async def _resolve_system_accounts(
        self,
        ctx: LedgerContext,
        request: GLPostingRequest,
    ) -> Dict[str, uuid.UUID]:
        codes = {line.system_account_code for line in request.lines if line.system_account_code}
        if not codes:
            return {}

        result = await self.db.execute(
            select(Account).where(
                and_(
                    Account.company_id == ctx.company_id,
                    Account.code.in_(codes),
                    Account.is_active == True,  # noqa: E712
                )
            )
        )
        resolved = {account.code: account.id for account in result.scalars().all()}

        for code in sorted(codes):
            if code not in resolved:
                logger.error(
                    f"System account {code} missing for company {ctx.company_id} "
                    f"while posting {request.source_type} {request.source_id}"
                )
                raise MissingSystemAccountError(code, purpose=request.source_type)
        return resolved

    async def post_document(self, ctx: LedgerContext, request: GLPostingRequest) -> JournalEntry:
        """
        Post a document's accounting impact as a posted journal entry.

        A document has at most one live entry; posting again is only allowed
        once the earlier entry has been reversed.
        """
        system_accounts = await self._resolve_system_accounts(ctx, request)

        fiscal_year = await self.journal.fiscal_years.get_fiscal_year_for_date(ctx, request.entry_date)
        if fiscal_year is None:
            raise InvalidFiscalYearError()

        lines = [
            JournalEntryLineCreate(
                account_id=line.account_id or system_accounts[line.system_account_code],
                description=line.description,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                party_type=line.party_type,
                party_id=line.party_id,
                cost_center_id=line.cost_center_id,
            )
            for line in request.lines
        ]

        entry = await self.journal.create_entry(
            ctx,
            JournalEntryCreate(
                fiscal_year_id=fiscal_year.id,
                entry_date=request.entry_date,
                entry_type=request.entry_type,
                narration=request.narration,
                reference_number=request.reference_number,
                source_type=request.source_type,
                source_id=request.source_id,
                status=JournalEntryStatus.POSTED,
                lines=lines,
            ),
        )
        logger.info(f"Posted {request.source_type} {request.source_id} as {entry.entry_number}")
        return entry

    async def reverse_document(
        self,
        ctx: LedgerContext,
        source_type: str,
        source_id: uuid.UUID,
        reversal_date: Optional[date] = None,
        narration: Optional[str] = None,
    ) -> JournalEntry:
        """Reverse the live entry of a source document."""
        entry = await self.journal.find_live_source_entry(ctx, source_type, source_id)
        if entry is None:
            raise EntryNotFoundError(
                message=f"No posted entry found for {source_type} {source_id}",
            )
        return await self.journal.reverse_entry(ctx, entry.id, reversal_date, narration)
