"""
LedgerCore - Financial Reporting Models

Statement mapping catalog (one per GAAP standard) and the immutable
history of generated statements.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, String, Uuid, JSON,
    Enum as SQLEnum, UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from ledgercore.models.base import BaseModel, utcnow
from ledgercore.models.company import GAAPStandard


class StatementType(str, Enum):
    """Generated statement kinds."""
    BALANCE_SHEET = "balance_sheet"
    PROFIT_LOSS = "profit_loss"
    CASH_FLOW = "cash_flow"


class ScheduleMapping(BaseModel):
    """
    One presentation line of a regulatory statement.

    Item lines collect the balances of the accounts mapped to them. Total
    lines are the signed sum of the rows whose rollup_parent_code points at
    them. Header lines are captions only.
    """

    __tablename__ = "schedule_mappings"

    gaap_standard: Mapped[GAAPStandard] = mapped_column(
        SQLEnum(GAAPStandard), nullable=False,
    )
    line_item_code: Mapped[str] = mapped_column(String(50), nullable=False)
    line_item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    statement_type: Mapped[StatementType] = mapped_column(
        SQLEnum(StatementType), nullable=False,
    )

    display_order: Mapped[int] = mapped_column(Integer, nullable=False)
    indent_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_bold: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_header: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_total: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_sub_schedule: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Rollup graph
    rollup_parent_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rollup_sign: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    __table_args__ = (
        UniqueConstraint('gaap_standard', 'line_item_code', name='uq_schedule_mappings_standard_code'),
        Index('ix_schedule_mappings_standard_type', 'gaap_standard', 'statement_type'),
        CheckConstraint('rollup_sign IN (1, -1)', name='rollup_sign_unit'),
    )

    def __repr__(self) -> str:
        return f"<ScheduleMapping({self.line_item_code})>"


class StatementRun(BaseModel):
    """
    Snapshot of one generated statement. Insert-only.
    """

    __tablename__ = "financial_statement_runs"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    fiscal_year_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("fiscal_years.id", ondelete="SET NULL"),
        nullable=True,
    )
    statement_type: Mapped[StatementType] = mapped_column(
        SQLEnum(StatementType), nullable=False,
    )

    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    from_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    to_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    generated_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    generated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index(
            'ix_financial_statement_runs_lookup',
            'company_id', 'fiscal_year_id', 'statement_type', 'as_of_date',
        ),
    )
