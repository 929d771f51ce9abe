"""
Stock invariant checks (pure).

Given the lines a caller wants to take out of stock and a snapshot of the
products involved, decide whether every line is covered. The first failing
line wins; later lines are not examined. Nothing here touches the database:
callers load the snapshot from rows they hold locked, inside the same atomic
unit that applies the deltas.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from ..errors import InsufficientStockError


@dataclass(frozen=True)
class StockLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class StockSnapshot:
    product_id: int
    name: str
    stock_quantity: int
    is_active: bool

    @classmethod
    def of(cls, product) -> "StockSnapshot":
        return cls(
            product_id=product.id,
            name=product.name,
            stock_quantity=product.stock_quantity,
            is_active=bool(product.is_active),
        )


@dataclass(frozen=True)
class StockViolation:
    reason: str
    product_id: int
    product_name: str | None
    requested: int
    available: int

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.available, 0)

    @property
    def message(self) -> str:
        if self.reason == InsufficientStockError.REASON_MISSING:
            return "Product no longer exists"
        if self.reason == InsufficientStockError.REASON_INACTIVE:
            return f'Product "{self.product_name}" is no longer for sale'
        return f'Product "{self.product_name}" only has {self.available} left in stock'

    def to_error(self) -> InsufficientStockError:
        return InsufficientStockError(
            self.message,
            product_id=self.product_id,
            product_name=self.product_name,
            requested=self.requested,
            available=self.available,
            reason=self.reason,
        )


def first_violation(
    lines: Iterable[StockLine],
    snapshots: Mapping[int, StockSnapshot],
    *,
    require_active: bool = True,
) -> StockViolation | None:
    """
    Walk lines in input order and return the first one stock cannot cover.

    Quantities already claimed by earlier lines for the same product are
    subtracted before a later line is checked, so listing one product twice
    cannot oversell it. available on the violation is what was left for that
    line.
    """
    claimed: dict[int, int] = {}
    for line in lines:
        snap = snapshots.get(line.product_id)
        if snap is None:
            return StockViolation(
                reason=InsufficientStockError.REASON_MISSING,
                product_id=line.product_id,
                product_name=None,
                requested=line.quantity,
                available=0,
            )
        if require_active and not snap.is_active:
            return StockViolation(
                reason=InsufficientStockError.REASON_INACTIVE,
                product_id=snap.product_id,
                product_name=snap.name,
                requested=line.quantity,
                available=0,
            )
        remaining = snap.stock_quantity - claimed.get(line.product_id, 0)
        if remaining < line.quantity:
            return StockViolation(
                reason=InsufficientStockError.REASON_INSUFFICIENT,
                product_id=snap.product_id,
                product_name=snap.name,
                requested=line.quantity,
                available=max(remaining, 0),
            )
        claimed[line.product_id] = claimed.get(line.product_id, 0) + line.quantity
    return None


def ensure_sufficient(
    lines: Iterable[StockLine],
    snapshots: Mapping[int, StockSnapshot],
    *,
    require_active: bool = True,
) -> None:
    """Raise InsufficientStockError for the first line stock cannot cover."""
    violation = first_violation(lines, snapshots, require_active=require_active)
    if violation is not None:
        raise violation.to_error()


def stock_deltas(lines: Iterable[StockLine], sign: int) -> dict[int, int]:
    """
    Per-product stock delta for a set of lines.

    sign=-1 takes stock out (placement, confirmation); sign=+1 puts it back
    (cancellation).
    """
    if sign not in (-1, 1):
        raise ValueError("sign must be -1 or +1")
    deltas: dict[int, int] = {}
    for line in lines:
        deltas[line.product_id] = deltas.get(line.product_id, 0) + sign * line.quantity
    return deltas
