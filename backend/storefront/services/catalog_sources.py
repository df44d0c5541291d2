# Overview: The two catalog data sources (bundled JSON and the remote database).

"""
Catalog Data Sources

Two interchangeable read sources with the same method set:

- StaticCatalogSource: bundled products.json / categories.json /
  site-config.json, loaded once and never written.
- DatabaseCatalogSource: SQLAlchemy queries against the remote catalog
  (products joined with images, variants and category; active rows only).

Both return the uniform product dict shape produced by Product.to_dict.
Fallback between them is the CatalogService's job, not theirs: a database
error propagates out of DatabaseCatalogSource unchanged.
"""
from __future__ import annotations

import copy
import json
from pathlib import Path

from sqlalchemy import or_

from ..extensions import db
from ..models import Category, Product
from .product_query_service import generate_slug, search_products, select_related
from storefront.time_utils import to_utc_z

PRODUCTS_FILE = "products.json"
CATEGORIES_FILE = "categories.json"
SITE_CONFIG_FILE = "site-config.json"

# Static records carry no inventory; treat each as one unit in stock.
STATIC_DEFAULT_STOCK = 1


def product_status(product: dict) -> dict:
    """Availability summary used by the cart status check."""
    active = bool(product.get("is_active", True))
    stock = product.get("stock_quantity") or 0
    return {
        "status": "active" if active else "inactive",
        "stock_quantity": stock,
        "stock_status": product.get("stock_status"),
        "available": active and stock > 0,
    }


def _load_json(path: Path, key: str):
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    return data.get(key, data) if isinstance(data, dict) else data


class StaticCatalogSource:
    """Read-only catalog backed by the bundled JSON files."""

    name = "static"

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self._categories = [
            self._normalize_category(c)
            for c in _load_json(self.data_dir / CATEGORIES_FILE, "categories")
        ]
        by_slug = {c["slug"]: c for c in self._categories}
        self._products = [
            self._normalize_product(p, by_slug)
            for p in _load_json(self.data_dir / PRODUCTS_FILE, "products")
        ]
        site_path = self.data_dir / SITE_CONFIG_FILE
        self._site_config = _load_json(site_path, "site") if site_path.exists() else {}

    @staticmethod
    def _normalize_category(raw: dict) -> dict:
        return {
            "id": str(raw["id"]),
            "name": raw["name"],
            "slug": raw.get("slug") or generate_slug(raw["name"]),
            "description": raw.get("description", ""),
            "sort_order": raw.get("sort_order", 0),
            "is_active": raw.get("is_active", True),
        }

    @staticmethod
    def _normalize_product(raw: dict, categories_by_slug: dict[str, dict]) -> dict:
        category = categories_by_slug.get(raw.get("category"))
        stock = raw.get("stock_quantity", STATIC_DEFAULT_STOCK)
        return {
            "id": str(raw["id"]),
            "name": raw["name"],
            "slug": raw.get("slug") or generate_slug(raw["name"]),
            "description": raw.get("description", ""),
            "price": raw["price"],
            "category_id": category["id"] if category else None,
            "category": raw.get("category"),
            "category_name": category["name"] if category else None,
            "condition": raw.get("condition"),
            "featured": bool(raw.get("featured", False)),
            "images": [
                {"url": img["url"], "alt": img.get("alt", ""), "primary": bool(img.get("primary", False))}
                for img in raw.get("images", [])
            ],
            "sizes": list(raw.get("sizes", [])),
            "variants": [],
            "tags": list(raw.get("tags", [])),
            "gender": raw.get("gender"),
            "is_active": raw.get("is_active", True),
            "stock_quantity": stock,
            "stock_status": raw.get("stock_status") or ("available" if stock > 0 else "out_of_stock"),
            "min_stock_level": raw.get("min_stock_level", 1),
            "max_stock_level": raw.get("max_stock_level", 100),
            "sku": raw.get("sku"),
            "weight": raw.get("weight"),
            "dimensions": raw.get("dimensions"),
            "created_at": to_utc_z(raw.get("created_at")),
            "updated_at": to_utc_z(raw.get("updated_at")),
        }

    def _active(self) -> list[dict]:
        return [copy.deepcopy(p) for p in self._products if p["is_active"]]

    def all_products(self) -> list[dict]:
        return self._active()

    def featured_products(self) -> list[dict]:
        return [p for p in self._active() if p["featured"]]

    def product_by_id(self, product_id: str) -> dict | None:
        return next((p for p in self._active() if p["id"] == str(product_id)), None)

    def products_by_category(self, category_slug: str) -> list[dict]:
        return [p for p in self._active() if p["category"] == category_slug]

    def search(self, query: str | None) -> list[dict]:
        # Matched in Python over the active rows: tags are stored as
        # ASCII-escaped JSON and SQL ILIKE only folds ASCII case.
        return search_products(self.all_products(), query)

    def categories(self) -> list[dict]:
        rows = (
            db.session.query(Category)
            .filter(Category.is_active.is_(True))
            .order_by(Category.sort_order.asc())
            .all()
        )
        return [c.to_dict() for c in rows]

    def category_by_slug(self, slug: str) -> dict | None:
        row = db.session.query(Category).filter_by(slug=slug, is_active=True).first()
        return row.to_dict() if row else None

    def category_by_id(self, category_id: str) -> dict | None:
        row = db.session.query(Category).filter_by(id=str(category_id), is_active=True).first()
        return row.to_dict() if row else None

    def related(self, product: dict, limit: int) -> list[dict]:
        category_id = product.get("category_id")

        same_query = self._active_query().filter(Product.id != product["id"])
        if category_id is None:
            same_query = same_query.filter(Product.category_id.is_(None))
        else:
            same_query = same_query.filter(Product.category_id == category_id)
        related = [p.to_dict() for p in same_query.order_by(Product.created_at.desc()).limit(limit).all()]

        if len(related) < limit:
            other_query = self._active_query().filter(Product.id != product["id"])
            if category_id is None:
                other_query = other_query.filter(Product.category_id.isnot(None))
            else:
                other_query = other_query.filter(or_(
                    Product.category_id != category_id,
                    Product.category_id.is_(None),
                ))
            others = other_query.order_by(Product.created_at.desc()).limit(limit - len(related)).all()
            related.extend(p.to_dict() for p in others)

        return related[:limit]

    def product_statuses(self, product_ids: list[str]) -> dict[str, dict]:
        rows = db.session.query(Product).filter(Product.id.in_([str(pid) for pid in product_ids])).all()
        return {p.id: product_status(p.to_dict()) for p in rows}

    def ping(self) -> int:
        """Cheap connectivity check; returns the product row count."""
        return db.session.query(Product).count()
