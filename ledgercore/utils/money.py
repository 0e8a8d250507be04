"""
LedgerCore - Money helpers

Amounts are Decimal with two places, rounded half up.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0.00")
TWO_PLACES = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Coerce a numeric value (Decimal, int, float or str) to a 2dp Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() keeps floats coming back from SQLite aggregates exact to their repr
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
