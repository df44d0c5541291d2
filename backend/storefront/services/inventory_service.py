# Overview: Stock adjustments plus the append-only stock movement and product history ledgers.

"""
Inventory Service

LEDGER INVARIANTS:
- stock_movements and product_history are append-only; never update or delete rows
- Ledger rows are written in the same transaction as the product change they record
- update_stock always writes exactly one movement and one history row, even when
  the quantity does not change (movement_type="adjustment")

CONCURRENCY:
update_stock is a plain read-modify-write. Two concurrent adjustments of the
same product can interleave and the later write wins; the ledger then shows
both movements computed from the same previous_stock.
"""
from __future__ import annotations

import json
from typing import Any

from ..extensions import db
from ..models import Product, ProductHistory, StockMovement
from ..validation import ValidationError
from storefront.time_utils import utcnow

STOCK_AVAILABLE = "available"
STOCK_LOW = "low_stock"
STOCK_OUT = "out_of_stock"


class ProductNotFoundError(LookupError):
    """Raised when a write targets a product id that does not exist."""


def stock_status_for(quantity: int, min_stock_level: int) -> str:
    if quantity <= 0:
        return STOCK_OUT
    if quantity <= min_stock_level:
        return STOCK_LOW
    return STOCK_AVAILABLE


def movement_type_for(delta: int) -> str:
    if delta > 0:
        return "in"
    if delta < 0:
        return "out"
    return "adjustment"


def serialize_value(value: Any) -> str | None:
    """History values are stored as text: scalars via str(), containers as JSON."""
    if value is None:
        return None
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)
    return str(value)


def append_stock_movement(
    *,
    product_id: str,
    movement_type: str,
    quantity: int,
    previous_stock: int,
    new_stock: int,
    reason: str,
    reference_id: str | None = None,
    created_by: str = "admin",
    notes: str | None = None,
) -> StockMovement:
    """Stage one stock movement row on the current session (caller commits)."""
    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reason=reason,
        reference_id=reference_id,
        created_by=created_by,
        notes=notes,
        created_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def append_product_history(
    *,
    product_id: str,
    action: str,
    field_name: str | None = None,
    old_value: Any = None,
    new_value: Any = None,
    changed_by: str = "admin",
    notes: str | None = None,
) -> ProductHistory:
    """Stage one history row on the current session (caller commits)."""
    entry = ProductHistory(
        product_id=product_id,
        action=action,
        field_name=field_name,
        old_value=serialize_value(old_value),
        new_value=serialize_value(new_value),
        changed_by=changed_by,
        notes=notes,
        created_at=utcnow(),
    )
    db.session.add(entry)
    return entry


def update_stock(
    *,
    product_id: str,
    new_quantity: int,
    reason: str = "adjustment",
    reference_id: str | None = None,
    notes: str | None = None,
    actor: str = "admin",
) -> dict:
    """
    Set a product's stock to new_quantity.

    Derives the new stock_status tier, rewrites updated_at, and appends one
    stock movement (type from the sign of the delta, quantity = |delta|) and
    one stock_changed history row.

    Raises:
        ValidationError: If new_quantity is negative
        ProductNotFoundError: If the product does not exist
    """
    if new_quantity < 0:
        raise ValidationError("quantity must be zero or greater")

    product = db.session.query(Product).filter(Product.id == str(product_id)).first()
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")

    previous_stock = product.stock_quantity
    delta = new_quantity - previous_stock

    product.stock_quantity = new_quantity
    product.stock_status = stock_status_for(new_quantity, product.min_stock_level)
    product.updated_at = utcnow()

    append_stock_movement(
        product_id=product.id,
        movement_type=movement_type_for(delta),
        quantity=abs(delta),
        previous_stock=previous_stock,
        new_stock=new_quantity,
        reason=reason,
        reference_id=reference_id,
        created_by=actor,
        notes=notes,
    )
    append_product_history(
        product_id=product.id,
        action="stock_changed",
        field_name="stock_quantity",
        old_value=previous_stock,
        new_value=new_quantity,
        changed_by=actor,
        notes=notes,
    )

    db.session.commit()
    return product.to_dict()


def list_stock_movements(product_id: str, limit: int = 100) -> list[dict]:
    rows = (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == str(product_id))
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
    return [m.to_dict() for m in rows]


def list_product_history(product_id: str, limit: int = 100) -> list[dict]:
    rows = (
        db.session.query(ProductHistory)
        .filter(ProductHistory.product_id == str(product_id))
        .order_by(ProductHistory.created_at.desc(), ProductHistory.id.desc())
        .limit(limit)
        .all()
    )
    return [h.to_dict() for h in rows]
