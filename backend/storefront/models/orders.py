from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_DELIVERED, STATUS_CANCELLED)
TERMINAL_STATUSES = frozenset({STATUS_DELIVERED, STATUS_CANCELLED})


class Order(db.Model):
    """
    Customer order with a snapshot of the customer's contact details.

    Customers are not an entity here; they are grouped by phone number after
    the fact, so name/phone/address are copied onto each order.

    stock_committed is True while this order's line quantities are deducted
    from product stock. It flips on the single decrement point and back off
    on cancellation, which makes restoring stock exactly-once.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("idempotency_key", name="uq_orders_idempotency_key"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_customer_phone", "customer_phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    customer_address = db.Column(db.Text, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # Fixed at creation
    total_amount = db.Column(db.Numeric(14, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    stock_committed = db.Column(db.Boolean, nullable=False, default=False)

    idempotency_key = db.Column(db.String(128), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def order_code(self) -> str:
        return f"ORD-{self.id:06d}"

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status!r} total={self.total_amount}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_code": self.order_code,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "notes": self.notes,
            "total_amount": money_str(self.total_amount),
            "status": self.status,
            "stock_committed": self.stock_committed,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Line item on an order. Immutable once written."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
            "created_at": to_utc_z(self.created_at),
        }
