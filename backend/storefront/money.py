from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """
    Coerce a price-like value to a Decimal with two places (half-up).

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Raises ValueError on anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError("amount must be a number")
    if not amount.is_finite():
        raise ValueError("amount must be a finite number")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    """Serialize a money amount for JSON responses ("150.00")."""
    if value is None:
        return None
    return str(to_money(value))
