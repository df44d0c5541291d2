from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    movement_type follows the sign of the change:
    - in: quantity went up
    - out: quantity went down
    - adjustment: stock was rewritten to the same value

    quantity is the absolute delta. Rows are only written by
    inventory_service (create_product initial stock, update_stock).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(64), nullable=False)
    reference_id = db.Column(db.String(64), nullable=True)
    created_by = db.Column(db.String(255), nullable=False, default="admin")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "reference_id": self.reference_id,
            "created_by": self.created_by,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class ProductHistory(db.Model):
    """
    Append-only product audit trail. Values are stored as strings
    (scalars) or serialized JSON (whole records).
    """
    __tablename__ = "product_history"
    __table_args__ = (
        db.Index("ix_product_history_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)

    action = db.Column(db.String(32), nullable=False)  # created, updated, stock_changed, deleted
    field_name = db.Column(db.String(64), nullable=True)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    changed_by = db.Column(db.String(255), nullable=False, default="admin")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "action": self.action,
            "field_name": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "changed_by": self.changed_by,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
