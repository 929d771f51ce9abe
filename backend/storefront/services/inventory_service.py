# Overview: Service-layer operations for inventory; stock inbound and manual adjustments.

# backend/storefront/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import ValidationError
from ..models import StockInboundRecord
from ..money import to_money
from ..validation import enforce_rules_stock_inbound, enforce_rules_stock_adjust
from .audit_service import AuditEmitter
from .cost_basis import new_average_cost
from .ledger_store import LedgerStore
"""
Inventory Invariants (authoritative)

Stock model:
- Product.stock_quantity is the live on-hand count and is never negative.
- Product.cost_price is the weighted-average unit cost.

Stock inbound:
- Appends a StockInboundRecord (append-only) and, in the SAME transaction,
  raises stock by quantity_added and re-blends cost_price:
    new_cost = (qty * cost + qty_in * cost_in) / (qty + qty_in)
  With zero on hand the batch cost is taken as-is.
- quantity_added > 0, cost_price_at_time >= 0, product must exist.

Adjustments:
- Manual restock/corrections change stock only; cost_price is untouched.
- An adjustment that would make stock negative is rejected.

Audit:
- stock.inbound / product.stock_updated are emitted after commit, best-effort.
"""


def apply_inbound(
    ledger: LedgerStore,
    unit,
    audit: AuditEmitter,
    product,
    quantity: int,
    unit_cost: Decimal,
    *,
    supplier: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> StockInboundRecord:
    """Inbound body for a product already locked inside an atomic unit."""
    new_stock = product.stock_quantity + quantity
    new_cost = new_average_cost(product.stock_quantity, product.cost_price, quantity, unit_cost)

    record = ledger.insert_stock_inbound_record(
        product_id=product.id,
        quantity_added=quantity,
        cost_price_at_time=unit_cost,
        stock_after=new_stock,
        cost_price_after=new_cost,
        supplier=supplier,
        notes=notes,
    )
    ledger.update_product_stock_and_cost(product, stock_quantity=new_stock, cost_price=new_cost)

    unit.after_commit(
        audit.stock_inbound,
        product.id,
        product.name,
        quantity,
        unit_cost,
        supplier,
        actor=actor,
    )
    return record


def record_stock_inbound(
    product_id: int,
    quantity_added,
    cost_price_at_time,
    supplier: str | None = None,
    notes: str | None = None,
    *,
    actor: str | None = None,
    ledger: LedgerStore | None = None,
    audit: AuditEmitter | None = None,
) -> StockInboundRecord:
    """
    Receive a batch of stock at a given unit cost.

    Returns the appended StockInboundRecord; stock_after / cost_price_after
    carry the product's new values.
    """
    quantity, unit_cost = enforce_rules_stock_inbound(quantity_added, cost_price_at_time)
    supplier = (supplier or "").strip() or None
    notes = (notes or "").strip() or None

    ledger = ledger or LedgerStore()
    audit = audit or AuditEmitter(ledger.session)

    def _work(unit):
        product = ledger.get_product_for_update(product_id)
        if product is None:
            raise ValidationError("Product not found", details={"product_id": product_id})
        return apply_inbound(
            ledger, unit, audit, product, quantity, unit_cost,
            supplier=supplier, notes=notes, actor=actor,
        )

    record = ledger.atomic(_work)
    current_app.logger.info(
        "Stock inbound for product %s: +%d at %s", product_id, quantity, unit_cost
    )
    return record


def adjust_stock(
    product_id: int,
    quantity_delta,
    reason,
    *,
    actor: str | None = None,
    ledger: LedgerStore | None = None,
    audit: AuditEmitter | None = None,
):
    """Manual restock or correction. Does not affect cost_price."""
    delta, reason = enforce_rules_stock_adjust(quantity_delta, reason)

    ledger = ledger or LedgerStore()
    audit = audit or AuditEmitter(ledger.session)

    def _work(unit):
        product = ledger.get_product_for_update(product_id)
        if product is None:
            raise ValidationError("Product not found", details={"product_id": product_id})

        old_stock = product.stock_quantity
        new_stock = old_stock + delta
        if new_stock < 0:
            raise ValidationError(
                "Adjustment would make stock negative",
                details={"stock_quantity": old_stock, "quantity_delta": delta},
            )

        ledger.update_product_stock_and_cost(product, stock_quantity=new_stock)

        unit.after_commit(
            audit.product_stock_updated,
            product.id,
            product.name,
            old_stock,
            new_stock,
            reason,
            actor=actor,
        )
        return product

    return ledger.atomic(_work)


def list_stock_inbound(
    *,
    product_id: int | None = None,
    limit: int = 50,
    ledger: LedgerStore | None = None,
) -> dict:
    """Inbound history, newest first, with totals over the returned rows."""
    limit = max(1, min(limit or 50, 500))
    ledger = ledger or LedgerStore()
    records = ledger.list_stock_inbound(product_id=product_id, limit=limit)

    total_quantity = sum(r.quantity_added for r in records)
    total_value = sum(
        (to_money(r.cost_price_at_time) * r.quantity_added for r in records),
        Decimal("0.00"),
    )

    return {
        "inbounds": [r.to_dict() for r in records],
        "stats": {
            "total_records": len(records),
            "total_quantity": total_quantity,
            "total_value": str(to_money(total_value)),
        },
    }
