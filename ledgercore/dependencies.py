"""
LedgerCore - FastAPI Dependencies

Shared dependencies for database sessions and the ledger context.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, Path
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.database import get_async_session
from ledgercore.services.company_service import CompanyService


async def get_ledger_context(
    company_id: uuid.UUID = Path(..., description="Company ID"),
    x_user_id: Optional[uuid.UUID] = Header(None, description="Acting user"),
    db: AsyncSession = Depends(get_async_session),
) -> LedgerContext:
    """
    Build the ledger context for a company-scoped request.

    Authentication is handled upstream; the acting user arrives in the
    X-User-Id header when known.

    Raises:
        CompanyNotFoundError: If the company does not exist
    """
    await CompanyService(db).get_company(company_id)
    return LedgerContext(company_id=company_id, user_id=x_user_id)
