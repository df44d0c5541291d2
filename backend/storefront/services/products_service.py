# backend/storefront/services/products_service.py
"""
Product write operations against the remote catalog.

- create_product writes the product, its images and size variants, one
  "created" history row and (if stock > 0) one initial "in" stock movement
- update_product is a partial patch; slug is re-derived only on rename and
  updated_at is always rewritten
- delete_product is a soft delete (is_active=False)

Callers (CatalogService) are responsible for checking that the remote
catalog is writable before calling in here.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product, ProductImage, ProductVariant
from .inventory_service import (
    append_product_history,
    append_stock_movement,
    stock_status_for,
)
from .product_query_service import generate_slug
from ..validation import ConflictError
from storefront.time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "price", "category_id", "condition", "featured",
    "tags", "gender", "is_active", "min_stock_level", "max_stock_level",
    "sku", "weight", "dimensions",
}

DEFAULT_INITIAL_STOCK = 1


def apply_product_patch(p: Product, patch: dict) -> dict:
    """Apply mutable fields; returns {field: (old, new)} for values that changed."""
    changes = {}
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        old = getattr(p, k)
        if old == v:
            continue
        setattr(p, k, v)
        changes[k] = (old, v)
    return changes


def list_products(*, include_inactive: bool = True) -> list[dict]:
    """Admin listing, newest first; includes soft-deleted rows unless told otherwise."""
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return [p.to_dict() for p in query.order_by(Product.created_at.desc()).all()]


def ensure_sku_available(sku: str | None, *, exclude_id: str | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"SKU already exists: {sku}")


def unique_slug(name: str, *, exclude_id: str | None = None) -> str:
    """
    Slug for name, disambiguated with -2, -3, ... when another product
    (active or not) already holds it.
    """
    base = generate_slug(name) or "product"
    query = db.session.query(Product.slug).filter(
        db.or_(Product.slug == base, Product.slug.like(f"{base}-%"))
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    taken = {row[0] for row in query.all()}

    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def create_product(
    *,
    patch: dict,
    images: list[dict] | None = None,
    sizes: list[str] | None = None,
    actor: str = "admin",
) -> dict:
    """
    Create a product from a validated patch dict.

    Args:
        patch: Product fields (name and price required)
        images: [{"url", "alt", "primary"}] in display order
        sizes: Size labels; each becomes an available variant
        actor: Recorded as created_by / changed_by on ledger rows

    Returns:
        Created product dict
    """
    ensure_sku_available(patch.get("sku"))

    stock_quantity = patch.get("stock_quantity")
    if stock_quantity is None:
        stock_quantity = DEFAULT_INITIAL_STOCK

    p = Product(
        featured=False,
        tags=[],
        is_active=True,
        min_stock_level=1,
        max_stock_level=100,
    )
    apply_product_patch(p, patch)
    p.slug = unique_slug(p.name)
    p.stock_quantity = stock_quantity
    p.stock_status = stock_status_for(stock_quantity, p.min_stock_level)
    now = utcnow()
    p.created_at = now
    p.updated_at = now

    for position, img in enumerate(images or []):
        p.images.append(ProductImage(
            image_url=img["url"],
            alt_text=img.get("alt") or p.name,
            is_primary=bool(img.get("primary", position == 0)),
            sort_order=position,
        ))
    for size in sizes or []:
        p.variants.append(ProductVariant(size=size, stock_quantity=0, is_available=True))

    db.session.add(p)
    db.session.flush()  # ensure p.id exists before ledger append

    snapshot = {k: getattr(p, k) for k in sorted(PRODUCT_MUTABLE_FIELDS)}
    snapshot.update({"slug": p.slug, "stock_quantity": p.stock_quantity, "stock_status": p.stock_status})
    append_product_history(
        product_id=p.id,
        action="created",
        new_value=snapshot,
        changed_by=actor,
    )

    if stock_quantity > 0:
        append_stock_movement(
            product_id=p.id,
            movement_type="in",
            quantity=stock_quantity,
            previous_stock=0,
            new_stock=stock_quantity,
            reason="initial_stock",
            created_by=actor,
        )

    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: str, patch: dict, actor: str = "admin") -> dict | None:
    """
    Update a product.

    Returns:
        Updated product dict, or None if not found
    """
    p = db.session.query(Product).filter(Product.id == str(product_id)).first()
    if not p:
        return None

    if "sku" in patch:
        ensure_sku_available(patch["sku"], exclude_id=p.id)
    changes = apply_product_patch(p, patch)
    if "name" in changes:
        old_slug = p.slug
        p.slug = unique_slug(p.name, exclude_id=p.id)
        if p.slug != old_slug:
            changes["slug"] = (old_slug, p.slug)
    if "min_stock_level" in changes:
        p.stock_status = stock_status_for(p.stock_quantity, p.min_stock_level)
    p.updated_at = utcnow()

    for field_name, (old, new) in sorted(changes.items()):
        append_product_history(
            product_id=p.id,
            action="updated",
            field_name=field_name,
            old_value=old,
            new_value=new,
            changed_by=actor,
        )

    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: str, actor: str = "admin") -> dict | None:
    """
    Soft-delete a product.

    Returns:
        The deactivated product dict, or None if not found
    """
    p = db.session.query(Product).filter(Product.id == str(product_id)).first()
    if not p:
        return None

    # Soft-delete only: preserve IDs and historical references.
    if p.is_active:
        p.is_active = False
        append_product_history(
            product_id=p.id,
            action="deleted",
            field_name="is_active",
            old_value=True,
            new_value=False,
            changed_by=actor,
        )
    p.updated_at = utcnow()

    db.session.commit()
    return p.to_dict()
