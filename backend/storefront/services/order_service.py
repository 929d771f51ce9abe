# Overview: Order placement; validates checkout input and creates orders atomically.

"""
Order Placement

place_order() is the one path that creates orders. It runs in two stages:

1. Input validation (no database access): customer snapshot and cart lines.
2. One atomic unit against the Ledger Store:
   - lock every referenced product (ascending id)
   - re-check stock on those live rows (authoritative check)
   - total_amount = sum(live price * quantity)
   - insert the order (pending) and its items
   - decrement stock, when stock is committed at order creation
   If anything fails the whole unit rolls back; no order, item or stock
   change from the call is visible afterwards.

The order.created audit entry is queued as an after-commit hook.

Stock commit point (STOCK_COMMIT_POINT):
- "order_created" (default): stock leaves at placement; confirming the order
  later does not touch stock again.
- "order_confirmed": placement only checks stock; confirmation re-checks and
  decrements (see order_status_service).
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import InsufficientStockError, OrderNotFoundError, PersistenceError, ValidationError
from ..models import Order
from ..models.orders import ORDER_STATUSES, STATUS_PENDING
from ..money import to_money
from ..validation import validate_customer, validate_cart_items
from .audit_service import AuditEmitter
from .ledger_store import LedgerStore
from .stock_rules import StockSnapshot, ensure_sufficient, first_violation, stock_deltas

COMMIT_ON_CREATE = "order_created"
COMMIT_ON_CONFIRM = "order_confirmed"
COMMIT_POINTS = {COMMIT_ON_CREATE, COMMIT_ON_CONFIRM}

MAX_IDEMPOTENCY_KEY_LENGTH = 128
MAX_ORDER_LIST_LIMIT = 500


def stock_commit_point() -> str:
    point = current_app.config.get("STOCK_COMMIT_POINT", COMMIT_ON_CREATE)
    if point not in COMMIT_POINTS:
        raise RuntimeError(f"STOCK_COMMIT_POINT must be one of {sorted(COMMIT_POINTS)}, got {point!r}")
    return point


def _clean_idempotency_key(key) -> str | None:
    if key is None:
        return None
    key = str(key).strip()
    if not key:
        return None
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(f"idempotency_key exceeds max length {MAX_IDEMPOTENCY_KEY_LENGTH}")
    return key


def place_order(
    customer: dict,
    items: list[dict],
    *,
    idempotency_key: str | None = None,
    actor: str | None = None,
    ledger: LedgerStore | None = None,
    audit: AuditEmitter | None = None,
) -> Order:
    """
    Create a pending order for the given customer and cart lines.

    Returns the committed Order. Raises ValidationError for bad input,
    InsufficientStockError when live stock cannot cover a line (first failing
    line only), PersistenceError when the unit could not commit.

    A repeated idempotency_key returns the order created by the first call
    instead of placing a second one.
    """
    snapshot = validate_customer(
        customer, min_phone_length=current_app.config.get("MIN_PHONE_LENGTH", 10)
    )
    lines = validate_cart_items(items)
    key = _clean_idempotency_key(idempotency_key)

    ledger = ledger or LedgerStore()
    audit = audit or AuditEmitter(ledger.session)
    commit_now = stock_commit_point() == COMMIT_ON_CREATE

    def _work(unit):
        if key is not None:
            existing = ledger.find_order_by_idempotency_key(key)
            if existing is not None:
                return existing, False

        products = ledger.get_products_for_update(line.product_id for line in lines)
        ensure_sufficient(lines, {pid: StockSnapshot.of(p) for pid, p in products.items()})

        total = sum((to_money(products[line.product_id].price) * line.quantity for line in lines), to_money(0))

        order = ledger.insert_order(
            customer_name=snapshot["name"],
            customer_phone=snapshot["phone"],
            customer_address=snapshot["address"],
            notes=snapshot["notes"],
            total_amount=total,
            status=STATUS_PENDING,
            stock_committed=commit_now,
            idempotency_key=key,
        )
        ledger.insert_order_items(order, [(products[line.product_id], line.quantity) for line in lines])

        if commit_now:
            ledger.apply_stock_deltas(products, stock_deltas(lines, -1))

        unit.after_commit(
            audit.order_created,
            order.id,
            snapshot["name"],
            total,
            len(lines),
            actor=actor,
        )
        return order, True

    try:
        order, created = ledger.atomic(_work)
    except InsufficientStockError as exc:
        current_app.logger.info("Order rejected: %s (%s)", exc, exc.reason)
        raise
    except PersistenceError as exc:
        # Lost a race on the same idempotency key: the other submission won.
        if key is not None and isinstance(exc.__cause__, IntegrityError):
            existing = ledger.find_order_by_idempotency_key(key)
            if existing is not None:
                return existing
        raise

    if created:
        current_app.logger.info("Order %s placed: total=%s lines=%d", order.id, order.total_amount, len(lines))
    else:
        current_app.logger.info("Order %s returned for repeated idempotency key", order.id)
    return order


def check_stock_availability(items: list[dict], *, ledger: LedgerStore | None = None) -> dict:
    """
    Read-only pre-checkout check of the cart against current stock.

    Advisory only: place_order re-checks on locked rows.
    """
    lines = validate_cart_items(items)
    ledger = ledger or LedgerStore()

    products = ledger.get_products(line.product_id for line in lines)
    violation = first_violation(lines, {pid: StockSnapshot.of(p) for pid, p in products.items()})
    if violation is not None:
        return {"available": False, "message": violation.message}
    return {"available": True}


def list_orders(
    *,
    status: str | None = None,
    limit: int = 100,
    ledger: LedgerStore | None = None,
) -> dict:
    """
    Back-office order list, newest first, each with its items.

    status narrows the list to one lifecycle state.
    """
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid order status: {status!r}",
            details={"status": status, "allowed": list(ORDER_STATUSES)},
        )
    limit = max(1, min(limit or 100, MAX_ORDER_LIST_LIMIT))
    ledger = ledger or LedgerStore()

    orders = ledger.list_orders(status=status, limit=limit)
    return {
        "items": [o.to_dict(include_items=True) for o in orders],
        "count": len(orders),
    }


def get_order_details(order_id: int, *, ledger: LedgerStore | None = None) -> dict:
    ledger = ledger or LedgerStore()
    order = ledger.get_order(order_id)
    if order is None:
        raise OrderNotFoundError("Order not found", details={"order_id": order_id})
    return order.to_dict(include_items=True)
