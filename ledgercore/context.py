"""
LedgerCore - Ledger Context

Explicit tenant and actor passed to every ledger and statement call.
"""

import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LedgerContext:
    """Company the call is scoped to, and the user acting (if known)."""

    company_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
