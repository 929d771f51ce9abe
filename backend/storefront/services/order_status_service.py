# Overview: Order status state machine with the stock moves each transition implies.

"""
Order Status Transitions

STATE MACHINE:
    pending    -> processing   (confirm)
    pending    -> cancelled    (cancel)
    processing -> cancelled    (cancel)
    processing -> delivered    (deliver)

    delivered and cancelled are terminal.

STOCK:
- Order.stock_committed says whether the order's quantities are currently
  out of stock. It is set at the single decrement point and cleared on
  cancel, so restoring is exactly-once.
- confirm: if stock is not committed yet (STOCK_COMMIT_POINT=order_confirmed)
  every item is re-checked on live, locked rows; the first shortfall aborts
  the whole transition with no stock change and the status untouched.
  Otherwise the confirm is stock-neutral.
- cancel: restores every item's quantity when stock is committed. No ceiling
  check on restore.
- deliver: status only.

CONCURRENCY:
- The order row and every product row involved are locked inside one atomic
  unit; all item updates commit together or not at all.
- from_status is the caller's view of the order. If the live status differs,
  someone else moved the order first and the request is rejected, except
  that cancelling an already-cancelled order is an idempotent no-op.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InsufficientStockError, InvalidTransitionError, OrderNotFoundError
from ..models import Order
from ..models.orders import (
    ORDER_STATUSES,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    TERMINAL_STATUSES,
)
from .audit_service import AuditEmitter
from .ledger_store import LedgerStore
from .stock_rules import StockLine, StockSnapshot, ensure_sufficient, stock_deltas

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_PROCESSING, STATUS_CANCELLED},
    STATUS_PROCESSING: {STATUS_DELIVERED, STATUS_CANCELLED},
    STATUS_DELIVERED: set(),
    STATUS_CANCELLED: set(),
}

STOCK_NONE = "none"
STOCK_DECREMENTED = "decremented"
STOCK_RESTORED = "restored"


def is_transition_allowed(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def _validate_status(value, field: str) -> str:
    if value not in ORDER_STATUSES:
        raise InvalidTransitionError(
            f"Invalid order status: {value!r}",
            details={field: value, "allowed": list(ORDER_STATUSES)},
        )
    return value


def transition_order_status(
    order_id: int,
    from_status: str | None,
    to_status: str,
    *,
    actor: str | None = None,
    ledger: LedgerStore | None = None,
    audit: AuditEmitter | None = None,
) -> Order:
    """
    Move an order to to_status, applying the stock effect atomically.

    Returns the updated Order. Raises OrderNotFoundError,
    InvalidTransitionError, InsufficientStockError (confirm only) or
    PersistenceError.
    """
    to_status = _validate_status(to_status, "to_status")
    if from_status is not None:
        from_status = _validate_status(from_status, "from_status")

    ledger = ledger or LedgerStore()
    audit = audit or AuditEmitter(ledger.session)

    def _work(unit):
        order = ledger.get_order_for_update(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found", details={"order_id": order_id})

        current = order.status

        # Double cancel: nothing to restore twice
        if to_status == STATUS_CANCELLED and current == STATUS_CANCELLED:
            return order, STOCK_NONE, False

        if from_status is not None and from_status != current:
            raise InvalidTransitionError(
                f"Order status has changed to {current!r}, please reload",
                details={"expected_status": from_status, "current_status": current},
            )

        if current in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Order is already {current} and cannot be changed",
                details={"current_status": current, "requested_status": to_status},
            )

        if not is_transition_allowed(current, to_status):
            raise InvalidTransitionError(
                f"Cannot change order from {current} to {to_status}",
                details={"current_status": current, "requested_status": to_status},
            )

        stock_effect = STOCK_NONE
        stock_committed = None

        if to_status == STATUS_PROCESSING and not order.stock_committed:
            lines = _lines_for(ledger, order)
            products = ledger.get_products_for_update(line.product_id for line in lines)
            # Confirming an accepted order does not depend on is_active
            ensure_sufficient(
                lines,
                {pid: StockSnapshot.of(p) for pid, p in products.items()},
                require_active=False,
            )
            ledger.apply_stock_deltas(products, stock_deltas(lines, -1))
            stock_effect = STOCK_DECREMENTED
            stock_committed = True

        elif to_status == STATUS_CANCELLED and order.stock_committed:
            lines = _lines_for(ledger, order)
            products = ledger.get_products_for_update(line.product_id for line in lines)
            ledger.apply_stock_deltas(products, stock_deltas(lines, +1))
            stock_effect = STOCK_RESTORED
            stock_committed = False

        ledger.update_order_status(order, to_status, stock_committed=stock_committed)

        unit.after_commit(
            audit.order_status_changed,
            order.id,
            order.order_code,
            current,
            to_status,
            order.customer_name,
            actor=actor,
        )
        if stock_effect == STOCK_RESTORED:
            unit.after_commit(
                audit.system_event,
                f"Stock returned to inventory after cancelling order #{order.order_code}",
                {"order_id": order.id, "previous_status": current},
            )
        elif stock_effect == STOCK_DECREMENTED:
            unit.after_commit(
                audit.system_event,
                f"Stock taken from inventory after confirming order #{order.order_code}",
                {"order_id": order.id},
            )
        return order, stock_effect, True

    try:
        order, stock_effect, changed = ledger.atomic(_work)
    except (InvalidTransitionError, InsufficientStockError) as exc:
        current_app.logger.info("Order %s not moved to %s: %s", order_id, to_status, exc)
        raise

    if changed:
        current_app.logger.info(
            "Order %s moved to %s (stock: %s)", order_id, to_status, stock_effect
        )
    else:
        current_app.logger.info("Order %s already cancelled; nothing to do", order_id)
    return order


def _lines_for(ledger: LedgerStore, order: Order) -> list[StockLine]:
    return [
        StockLine(product_id=item.product_id, quantity=item.quantity)
        for item in ledger.get_order_items(order.id)
    ]
