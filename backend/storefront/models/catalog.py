from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with its live stock level and cost basis.

    STOCK: stock_quantity is the authoritative on-hand count. It is only
    changed inside an atomic unit by order placement, status transitions,
    stock inbound and manual adjustments. The CHECK constraint is a backstop
    for the in-transaction sufficiency check, not a replacement for it.

    COST: cost_price is the weighted-average unit cost. It is written only by
    stock inbound (see services.cost_basis); product edits cannot set it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True, index=True)

    price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    cost_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": money_str(self.price),
            "cost_price": money_str(self.cost_price),
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockInboundRecord(db.Model):
    """
    Append-only record of an inventory batch arriving.

    cost_price_at_time is the unit cost of this batch only. stock_after and
    cost_price_after snapshot the product right after the batch was applied,
    so the history explains how Product.cost_price reached its value.
    """
    __tablename__ = "stock_inbound"
    __table_args__ = (
        db.CheckConstraint("quantity_added > 0", name="ck_stock_inbound_quantity_positive"),
        db.CheckConstraint("cost_price_at_time >= 0", name="ck_stock_inbound_cost_non_negative"),
        db.Index("ix_stock_inbound_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_added = db.Column(db.Integer, nullable=False)
    cost_price_at_time = db.Column(db.Numeric(14, 2), nullable=False)

    stock_after = db.Column(db.Integer, nullable=False)
    cost_price_after = db.Column(db.Numeric(14, 2), nullable=False)

    supplier = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("inbound_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity_added": self.quantity_added,
            "cost_price_at_time": money_str(self.cost_price_at_time),
            "stock_after": self.stock_after,
            "cost_price_after": money_str(self.cost_price_after),
            "supplier": self.supplier,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
