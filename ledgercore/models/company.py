"""
LedgerCore - Company Model

The tenant record every ledger row is scoped to.
"""

from enum import Enum

from sqlalchemy import String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from ledgercore.models.base import BaseModel


class GAAPStandard(str, Enum):
    """Reporting framework; selects the statement mapping catalog."""
    INDIA_GAAP = "INDIA_GAAP"
    US_GAAP = "US_GAAP"
    IFRS = "IFRS"


class Company(BaseModel):
    """A bookkeeping tenant."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gaap_standard: Mapped[GAAPStandard] = mapped_column(
        SQLEnum(GAAPStandard),
        default=GAAPStandard.INDIA_GAAP,
        nullable=False,
    )
    base_currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)

    def __repr__(self) -> str:
        return f"<Company({self.name})>"
