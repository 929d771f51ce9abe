# backend/storefront/services/products_service.py
"""
Products Service

Catalogue reads for the storefront and product creation for the back office.
Stock and cost are never set directly: a product starts at zero and an
optional opening batch goes through the same inbound path as any delivery,
inside the same atomic unit as the product insert.
"""
from __future__ import annotations

from ..errors import ValidationError
from ..models import Product
from ..validation import enforce_rules_stock_inbound
from .audit_service import AuditEmitter
from .inventory_service import apply_inbound
from .ledger_store import LedgerStore

PRODUCT_MUTABLE_FIELDS = {"name", "description", "category", "price", "is_active"}


def list_products(
    *,
    include_inactive: bool = False,
    category: str | None = None,
    ledger: LedgerStore | None = None,
) -> dict:
    """
    Product listing, lowest stock first (what the back office wants to see).

    The storefront passes include_inactive=False so products that are no
    longer for sale are hidden.
    """
    ledger = ledger or LedgerStore()
    query = ledger.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)

    products = query.order_by(Product.stock_quantity.asc(), Product.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def create_product(
    *,
    patch: dict,
    opening_stock=None,
    opening_cost=None,
    supplier: str | None = None,
    actor: str | None = None,
    ledger: LedgerStore | None = None,
    audit: AuditEmitter | None = None,
) -> Product:
    """
    Create product using a validated patch dict.

    opening_stock / opening_cost, when given, are recorded as the first
    inbound batch so cost_price starts from a real basis.
    """
    fields = {k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS}
    if not fields.get("name"):
        raise ValidationError("name is required")

    opening = None
    if opening_stock not in (None, "", 0):
        if opening_cost is None:
            raise ValidationError("opening_cost is required with opening_stock")
        opening = enforce_rules_stock_inbound(opening_stock, opening_cost)

    ledger = ledger or LedgerStore()
    audit = audit or AuditEmitter(ledger.session)

    def _work(unit):
        product = ledger.insert_product(stock_quantity=0, cost_price=0, **fields)
        if opening is not None:
            quantity, unit_cost = opening
            apply_inbound(
                ledger, unit, audit, product, quantity, unit_cost,
                supplier=supplier, notes="Opening stock", actor=actor,
            )
        return product

    return ledger.atomic(_work)
