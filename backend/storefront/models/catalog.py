from __future__ import annotations

import uuid

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Category(db.Model):
    """
    Catalog category.

    Read-only from the application's point of view: rows are managed directly
    in the database. Listing order is sort_order ascending.
    """
    __tablename__ = "categories"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(120), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description or "",
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class Product(db.Model):
    """
    Product master data.

    SLUG: derived from name on create and on rename (see
    services.product_query_service.generate_slug). A numeric suffix keeps it
    unique when two products share a name.

    STOCK: stock_status is derived from stock_quantity and min_stock_level
    whenever stock changes; never set it independently.

    DELETE: soft only (is_active=False). History and stock movements keep
    referencing the row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_created", "is_active", "created_at"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_id)

    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)

    # Smallest currency unit (COP has no minor unit in practice)
    price = db.Column(db.Integer, nullable=False)

    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True, index=True)
    condition = db.Column(db.String(32), nullable=True)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    tags = db.Column(db.JSON, nullable=False, default=list)
    gender = db.Column(db.String(16), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=1)
    stock_status = db.Column(db.String(16), nullable=False, default="available")
    min_stock_level = db.Column(db.Integer, nullable=False, default=1)
    max_stock_level = db.Column(db.Integer, nullable=False, default=100)

    sku = db.Column(db.String(64), nullable=True)
    weight = db.Column(db.Float, nullable=True)
    dimensions = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    category = db.relationship("Category", lazy="joined")
    images = db.relationship(
        "ProductImage",
        lazy="selectin",
        order_by="ProductImage.sort_order",
        cascade="all, delete-orphan",
    )
    variants = db.relationship(
        "ProductVariant",
        lazy="selectin",
        order_by="ProductVariant.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r} price={self.price}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description or "",
            "price": self.price,
            "category_id": self.category_id,
            "category": self.category.slug if self.category else None,
            "category_name": self.category.name if self.category else None,
            "condition": self.condition,
            "featured": self.featured,
            "images": [img.to_dict() for img in self.images],
            "sizes": [v.size for v in self.variants],
            "variants": [v.to_dict() for v in self.variants],
            "tags": list(self.tags or []),
            "gender": self.gender,
            "is_active": self.is_active,
            "stock_quantity": self.stock_quantity,
            "stock_status": self.stock_status,
            "min_stock_level": self.min_stock_level,
            "max_stock_level": self.max_stock_level,
            "sku": self.sku,
            "weight": self.weight,
            "dimensions": self.dimensions,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    image_url = db.Column(db.String(512), nullable=False)
    alt_text = db.Column(db.String(255), nullable=True)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {"url": self.image_url, "alt": self.alt_text or "", "primary": self.is_primary}


class ProductVariant(db.Model):
    __tablename__ = "product_variants"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    size = db.Column(db.String(16), nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "stock_quantity": self.stock_quantity,
            "is_available": self.is_available,
        }
