"""
Weighted-average cost.

    new_avg = (qty_on_hand * avg_cost + qty_in * unit_cost_in) / (qty_on_hand + qty_in)

Rounded to the nearest cent, half-up. With nothing on hand there is no
prior basis to blend and the batch cost is taken as-is.
"""

from __future__ import annotations

from decimal import Decimal

from ..money import to_money


def new_average_cost(
    current_qty: int,
    current_avg_cost,
    incoming_qty: int,
    incoming_unit_cost,
) -> Decimal:
    incoming_cost = to_money(incoming_unit_cost)
    if incoming_qty <= 0:
        raise ValueError("incoming_qty must be > 0")
    if current_qty <= 0:
        return incoming_cost

    current_cost = to_money(current_avg_cost if current_avg_cost is not None else 0)
    total_cost = current_qty * current_cost + incoming_qty * incoming_cost
    return to_money(total_cost / (current_qty + incoming_qty))
