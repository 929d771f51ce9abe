from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class AuditLogEntry(db.Model):
    """
    Append-only audit trail entry.

    Side channel only: nothing in the order or inventory services reads these
    rows to make a decision. event_type uses a dotted taxonomy such as
    "order.status_changed" or "stock.inbound".
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        db.Index("ix_audit_logs_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True)

    actor = db.Column(db.String(255), nullable=False)
    action = db.Column(db.String(32), nullable=False)
    description = db.Column(db.Text, nullable=False)

    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)
    # "metadata" is reserved on declarative models
    extra = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor": self.actor,
            "action": self.action,
            "description": self.description,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "metadata": self.extra,
            "created_at": to_utc_z(self.created_at),
        }
