"""
LedgerCore - Financial Statements Router

Generation, history and export of Balance Sheet, Profit & Loss and Cash
Flow statements.
"""

import io
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ledgercore.context import LedgerContext
from ledgercore.database import get_db
from ledgercore.dependencies import get_ledger_context
from ledgercore.models.reporting import StatementType
from ledgercore.schemas.reporting import (
    BalanceSheetRequest,
    PeriodStatementRequest,
    BalanceSheetResult,
    ProfitLossResult,
    CashFlowResult,
    StatementRunResponse,
    StatementRunDetail,
)
from ledgercore.services.financial_statement_service import FinancialStatementService
from ledgercore.services.report_export_service import FinancialReportExportService


router = APIRouter(
    prefix="/api/v1/companies/{company_id}/financial-statements",
    tags=["Financial Statements"],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post("/balance-sheet", response_model=BalanceSheetResult)
async def generate_balance_sheet(
    request: BalanceSheetRequest,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Generate the Balance Sheet.

    The as-of date defaults to the fiscal year's end date, else today.
    """
    service = FinancialStatementService(db)
    return await service.generate_balance_sheet(
        ctx,
        fiscal_year_id=request.fiscal_year_id,
        as_of_date=request.as_of_date,
        strict=request.strict,
    )


@router.post("/profit-loss", response_model=ProfitLossResult)
async def generate_profit_loss(
    request: PeriodStatementRequest,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Generate the Statement of Profit and Loss."""
    service = FinancialStatementService(db)
    return await service.generate_profit_loss(
        ctx,
        fiscal_year_id=request.fiscal_year_id,
        from_date=request.from_date,
        to_date=request.to_date,
        strict=request.strict,
    )


@router.post("/cash-flow", response_model=CashFlowResult)
async def generate_cash_flow(
    request: PeriodStatementRequest,
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Generate the Cash Flow Statement (indirect method)."""
    service = FinancialStatementService(db)
    return await service.generate_cash_flow(
        ctx,
        fiscal_year_id=request.fiscal_year_id,
        from_date=request.from_date,
        to_date=request.to_date,
        strict=request.strict,
    )


@router.get("/history", response_model=List[StatementRunResponse])
async def list_statement_runs(
    statement_type: Optional[StatementType] = Query(None, description="Filter by statement type"),
    limit: Optional[int] = Query(None, ge=1, le=200, description="Maximum runs to return"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get previously generated statements, newest first."""
    service = FinancialStatementService(db)
    return await service.list_runs(ctx, statement_type=statement_type, limit=limit)


@router.get("/runs/{run_id}", response_model=StatementRunDetail)
async def get_statement_run(
    run_id: uuid.UUID = Path(..., description="Statement run ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Get a generated statement as it was produced."""
    service = FinancialStatementService(db)
    return await service.get_run(ctx, run_id)


@router.get("/runs/{run_id}/export")
async def export_statement_run(
    run_id: uuid.UUID = Path(..., description="Statement run ID"),
    ctx: LedgerContext = Depends(get_ledger_context),
    db: AsyncSession = Depends(get_db),
):
    """Download a generated statement as an Excel workbook."""
    service = FinancialReportExportService(db)
    content, filename = await service.export_run(ctx, run_id)
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"'
        },
    )
