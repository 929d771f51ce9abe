# Overview: Data-access layer for products, orders and stock inbound; owns the atomic unit.

"""
Ledger Store

Every write the order and inventory services make goes through a LedgerStore.
The services never hold their own session handles; they are given a store
(or get one wrapping db.session by default).

Atomic units:
- LedgerStore.atomic(work) runs work(unit) inside ONE database transaction.
- On SQLite the transaction opens with BEGIN IMMEDIATE, which takes the write
  lock up front and serializes concurrent writers. Other dialects lock the
  touched rows with SELECT ... FOR UPDATE (ascending id, to avoid deadlocks).
- Products and orders carry a version_id column; a concurrent update that
  slips through raises StaleDataError and the whole unit is retried from
  fresh reads.
- Any failure rolls the whole unit back. Database failures that survive the
  retries surface as PersistenceError.

After-commit hooks:
- unit.after_commit(fn, ...) queues a side effect (audit emission).
- Hooks run only once the commit succeeded, in registration order.
- A failing hook is logged and skipped; it cannot undo the commit or stop
  the remaining hooks.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterable, Mapping

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import PersistenceError
from ..money import to_money
from ..models import Product, Order, OrderItem, StockInboundRecord
from .concurrency import lock_for_update, run_with_retry


class AtomicUnit:
    """One transaction's worth of work plus what to do once it commits."""

    def __init__(self, store: "LedgerStore"):
        self.store = store
        self._hooks: list[tuple[Callable, tuple, dict]] = []

    def after_commit(self, hook: Callable, *args, **kwargs) -> None:
        self._hooks.append((hook, args, kwargs))

    def run_after_commit_hooks(self) -> None:
        for hook, args, kwargs in self._hooks:
            try:
                hook(*args, **kwargs)
            except Exception:
                current_app.logger.exception(
                    "After-commit hook %s failed", getattr(hook, "__name__", repr(hook))
                )
        self._hooks.clear()


class LedgerStore:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    def begin(self) -> None:
        if self.session.get_bind().dialect.name == "sqlite":
            self.session.execute(text("BEGIN IMMEDIATE"))

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def atomic(self, work: Callable[[AtomicUnit], object], *, attempts: int | None = None):
        """
        Run work(unit) as a single all-or-nothing transaction.

        Business errors raised by work (validation, stock, transition) roll
        back and propagate unchanged. Lock and version conflicts are retried;
        database errors that remain become PersistenceError.
        """
        config = current_app.config
        if attempts is None:
            attempts = config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
        backoff = config.get("TRANSACTION_RETRY_BACKOFF", 0.1)

        def _op():
            unit = AtomicUnit(self)
            self.begin()
            try:
                result = work(unit)
                self.commit()
            except Exception:
                self.rollback()
                raise
            return result, unit

        try:
            result, unit = run_with_retry(
                _op, session=self.session, attempts=attempts, backoff_base=backoff
            )
        except SQLAlchemyError as exc:
            current_app.logger.error("Atomic unit failed and was rolled back: %s", exc)
            raise PersistenceError(
                "Could not save changes, please try again",
                details={"cause": exc.__class__.__name__},
            ) from exc

        unit.run_after_commit_hooks()
        return result

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def get_product(self, product_id: int) -> Product | None:
        return self.session.query(Product).filter_by(id=product_id).first()

    def get_products(self, product_ids: Iterable[int]) -> dict[int, Product]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        rows = self.session.query(Product).filter(Product.id.in_(ids)).all()
        return {p.id: p for p in rows}

    def get_product_for_update(self, product_id: int) -> Product | None:
        query = self.session.query(Product).filter_by(id=product_id)
        return lock_for_update(query.populate_existing()).first()

    def get_products_for_update(self, product_ids: Iterable[int]) -> dict[int, Product]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        query = (
            self.session.query(Product)
            .filter(Product.id.in_(ids))
            .order_by(Product.id.asc())
        )
        return {p.id: p for p in lock_for_update(query.populate_existing()).all()}

    def update_product_stock_and_cost(
        self,
        product: Product,
        *,
        stock_quantity: int,
        cost_price: Decimal | None = None,
    ) -> Product:
        product.stock_quantity = stock_quantity
        if cost_price is not None:
            product.cost_price = cost_price
        self.session.flush()
        return product

    def apply_stock_deltas(self, products: Mapping[int, Product], deltas: Mapping[int, int]) -> None:
        """Apply every delta to its (already locked) product in one flush."""
        for product_id in sorted(deltas):
            product = products[product_id]
            product.stock_quantity = product.stock_quantity + deltas[product_id]
        self.session.flush()

    def insert_product(self, **fields) -> Product:
        product = Product(**fields)
        self.session.add(product)
        self.session.flush()
        return product

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def insert_order(self, **fields) -> Order:
        order = Order(**fields)
        self.session.add(order)
        self.session.flush()
        return order

    def insert_order_items(self, order: Order, lines: Iterable[tuple[Product, int]]) -> list[OrderItem]:
        items = []
        for product, quantity in lines:
            unit_price = to_money(product.price)
            item = OrderItem(
                order_id=order.id,
                product_id=product.id,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=unit_price * quantity,
            )
            self.session.add(item)
            items.append(item)
        self.session.flush()
        return items

    def get_order(self, order_id: int) -> Order | None:
        return self.session.query(Order).filter_by(id=order_id).first()

    def get_order_for_update(self, order_id: int) -> Order | None:
        query = self.session.query(Order).filter_by(id=order_id)
        return lock_for_update(query.populate_existing()).first()

    def get_order_items(self, order_id: int) -> list[OrderItem]:
        return (
            self.session.query(OrderItem)
            .filter_by(order_id=order_id)
            .order_by(OrderItem.id.asc())
            .all()
        )

    def find_order_by_idempotency_key(self, key: str) -> Order | None:
        return self.session.query(Order).filter_by(idempotency_key=key).first()

    def list_orders(self, *, status: str | None = None, limit: int = 100) -> list[Order]:
        query = self.session.query(Order)
        if status is not None:
            query = query.filter(Order.status == status)
        return (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )

    def update_order_status(
        self,
        order: Order,
        status: str,
        *,
        stock_committed: bool | None = None,
    ) -> Order:
        order.status = status
        if stock_committed is not None:
            order.stock_committed = stock_committed
        self.session.flush()
        return order

    # ------------------------------------------------------------------
    # Stock inbound
    # ------------------------------------------------------------------

    def insert_stock_inbound_record(self, **fields) -> StockInboundRecord:
        record = StockInboundRecord(**fields)
        self.session.add(record)
        self.session.flush()
        return record

    def list_stock_inbound(self, *, product_id: int | None = None, limit: int = 50) -> list[StockInboundRecord]:
        query = self.session.query(StockInboundRecord)
        if product_id is not None:
            query = query.filter_by(product_id=product_id)
        return (
            query.order_by(StockInboundRecord.created_at.desc(), StockInboundRecord.id.desc())
            .limit(limit)
            .all()
        )
