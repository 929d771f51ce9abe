# Overview: Best-effort audit trail writer and pre-built event helpers.

"""
Audit Trail Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- Side channel: written AFTER the business transaction commits (queued as an
  after-commit hook on the atomic unit), in a transaction of its own.
- Best-effort: a failed write is logged and swallowed. It never raises to the
  caller and never rolls back a committed order or stock change.
- Nothing in the order/inventory services reads audit entries.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import AuditEmissionError
from ..models import AuditLogEntry
from ..money import money_str

ACTOR_SYSTEM = "System"

STATUS_LABELS = {
    "pending": "Awaiting confirmation",
    "processing": "Out for delivery",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
}


class AuditEmitter:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _write(self, **fields) -> AuditLogEntry:
        try:
            entry = AuditLogEntry(**fields)
            self.session.add(entry)
            self.session.commit()
            return entry
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise AuditEmissionError(f"could not write {fields.get('event_type')} audit entry") from exc

    def record(
        self,
        *,
        event_type: str,
        entity_type: str,
        action: str,
        description: str,
        entity_id=None,
        actor: str | None = None,
        old_values: dict | None = None,
        new_values: dict | None = None,
        metadata: dict | None = None,
    ) -> AuditLogEntry | None:
        """Write one audit entry. Returns None when disabled or on failure."""
        if not current_app.config.get("AUDIT_ENABLED", True):
            return None

        try:
            return self._write(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                actor=actor or current_app.config.get("AUDIT_DEFAULT_ACTOR", "Admin"),
                action=action,
                description=description,
                old_values=old_values,
                new_values=new_values,
                extra=metadata,
            )
        except AuditEmissionError as exc:
            current_app.logger.warning("%s: %s", exc, exc.__cause__)
            return None
        except Exception:
            current_app.logger.exception("Unexpected failure writing %s audit entry", event_type)
            return None

    # ------------------------------------------------------------------
    # Pre-built events
    # ------------------------------------------------------------------

    def order_created(self, order_id: int, customer_name: str, total_amount, item_count: int, actor=None):
        return self.record(
            event_type="order.created",
            entity_type="order",
            entity_id=order_id,
            actor=actor,
            action="create",
            description=(
                f"New order from {customer_name} - {item_count} item(s) - {money_str(total_amount)}"
            ),
            new_values={"total_amount": money_str(total_amount), "item_count": item_count},
            metadata={"customer_name": customer_name},
        )

    def order_status_changed(
        self,
        order_id: int,
        order_code: str,
        old_status: str,
        new_status: str,
        customer_name: str,
        actor=None,
    ):
        old_label = STATUS_LABELS.get(old_status, old_status)
        new_label = STATUS_LABELS.get(new_status, new_status)
        return self.record(
            event_type="order.status_changed",
            entity_type="order",
            entity_id=order_id,
            actor=actor,
            action="update",
            description=(
                f'Order #{order_code} ({customer_name}) moved from "{old_label}" to "{new_label}"'
            ),
            old_values={"status": old_status},
            new_values={"status": new_status},
            metadata={"customer_name": customer_name, "order_code": order_code},
        )

    def stock_inbound(
        self,
        product_id: int,
        product_name: str,
        quantity: int,
        cost_price,
        supplier: str | None = None,
        actor=None,
    ):
        source = f" from {supplier}" if supplier else ""
        return self.record(
            event_type="stock.inbound",
            entity_type="product",
            entity_id=product_id,
            actor=actor,
            action="update",
            description=(
                f'Received {quantity} x "{product_name}" at {money_str(cost_price)}{source}'
            ),
            new_values={"quantity_added": quantity, "cost_price": money_str(cost_price)},
            metadata={"supplier": supplier},
        )

    def product_stock_updated(
        self,
        product_id: int,
        product_name: str,
        old_stock: int,
        new_stock: int,
        reason: str,
        actor=None,
    ):
        return self.record(
            event_type="product.stock_updated",
            entity_type="product",
            entity_id=product_id,
            actor=actor,
            action="update",
            description=(
                f'Stock for "{product_name}" changed from {old_stock} to {new_stock} ({reason})'
            ),
            old_values={"stock_quantity": old_stock},
            new_values={"stock_quantity": new_stock},
            metadata={"reason": reason},
        )

    def system_event(self, description: str, metadata: dict | None = None):
        return self.record(
            event_type="system.event",
            entity_type="system",
            actor=ACTOR_SYSTEM,
            action="system",
            description=description,
            metadata=metadata,
        )
