# Overview: Pure list operations over catalog products (search, filter, sort, paginate, stats).

"""
Product Query Helpers

These functions work on the uniform product dict shape (see
models.catalog.Product.to_dict and StaticCatalogSource) and never touch a data
source, so the same semantics apply whether the database or the bundled JSON
answered.

FILTER RULES:
- All predicates are ANDed
- A predicate whose value is None (or an empty list) is skipped
- Price bounds are inclusive; 0 is a real bound
- Gender only excludes products that declare a different gender
"""
from __future__ import annotations

import math
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime

from storefront.time_utils import as_datetime

DEFAULT_PAGE_SIZE = 12
DEFAULT_RELATED_LIMIT = 4
SORT_KEYS = {"name", "price", "created_at"}


@dataclass
class ProductFilter:
    category: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    condition: str | None = None
    sizes: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    gender: str | None = None


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def generate_slug(text: str) -> str:
    """
    URL-safe slug: lowercase, accents removed, only [a-z0-9-].

    "Camisa Clásica  Niño!" -> "camisa-clasica-nino"
    """
    slug = strip_accents(text.lower())
    slug = re.sub(r"[^a-z0-9\s-]", "", slug).strip()
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug)


def search_products(products: list[dict], query: str | None) -> list[dict]:
    """
    Case-insensitive substring search over name, description, tags and
    category. A blank query returns the input unchanged.
    """
    if query is None or not query.strip():
        return products

    term = query.strip().lower()

    def matches(product: dict) -> bool:
        if term in (product.get("name") or "").lower():
            return True
        if term in (product.get("description") or "").lower():
            return True
        if any(term in str(tag).lower() for tag in product.get("tags") or []):
            return True
        if term in (product.get("category") or "").lower():
            return True
        return term in (product.get("category_name") or "").lower()

    return [p for p in products if matches(p)]


def _matches_filter(product: dict, flt: ProductFilter) -> bool:
    if flt.category is not None and product.get("category") != flt.category:
        return False

    price = product.get("price") or 0
    if flt.min_price is not None and price < flt.min_price:
        return False
    if flt.max_price is not None and price > flt.max_price:
        return False

    if flt.condition is not None and product.get("condition") != flt.condition:
        return False

    if flt.sizes:
        sizes = set(product.get("sizes") or [])
        if not any(size in sizes for size in flt.sizes):
            return False

    if flt.tags:
        tags = set(product.get("tags") or [])
        if not any(tag in tags for tag in flt.tags):
            return False

    if flt.gender is not None and product.get("gender") and product["gender"] != flt.gender:
        return False

    return True


def filter_products(products: list[dict], flt: ProductFilter | None) -> list[dict]:
    if flt is None:
        return list(products)
    return [p for p in products if _matches_filter(p, flt)]


def _name_key(product: dict) -> tuple[str, str]:
    name = product.get("name") or ""
    return strip_accents(name).casefold(), name


def _created_key(product: dict) -> datetime:
    return as_datetime(product.get("created_at")) or datetime.min


def sort_products(products: list[dict], sort_by: str | None, sort_order: str = "asc") -> list[dict]:
    """
    Stable sort by name, price or created_at. Unknown keys return a copy in
    the original order. sort_order="desc" reverses the comparison only, so
    ties keep their relative order either way.
    """
    if sort_by not in SORT_KEYS:
        return list(products)

    if sort_by == "name":
        key = _name_key
    elif sort_by == "price":
        key = lambda p: p.get("price") or 0  # noqa: E731
    else:
        key = _created_key

    return sorted(products, key=key, reverse=(sort_order == "desc"))


def paginate_products(products: list[dict], page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
    """
    1-indexed pagination. Pages past the end (or below 1) give an empty slice.
    """
    limit = max(int(limit), 1)
    page = int(page)
    total_items = len(products)
    total_pages = math.ceil(total_items / limit)

    if page < 1:
        items: list[dict] = []
    else:
        start = (page - 1) * limit
        items = products[start:start + limit]

    return {
        "products": items,
        "total_pages": total_pages,
        "current_page": page,
        "total_items": total_items,
    }


def select_related(products: list[dict], product: dict, limit: int = DEFAULT_RELATED_LIMIT) -> list[dict]:
    """
    Same-category products first (self excluded), then padding from other
    categories, capped at limit.
    """
    same = [p for p in products if p["id"] != product["id"] and p.get("category") == product.get("category")]
    if len(same) < limit:
        same.extend(
            p for p in products
            if p["id"] != product["id"] and p.get("category") != product.get("category")
        )
    return same[:limit]


def compute_product_stats(products: list[dict]) -> dict:
    """
    Single pass aggregate over a product list.

    price_range bounds are None for an empty list.
    """
    by_category: dict[str, int] = {}
    conditions: list[str] = []
    sizes: set[str] = set()
    min_price: int | None = None
    max_price: int | None = None

    for product in products:
        category = product.get("category_name") or product.get("category") or "uncategorized"
        by_category[category] = by_category.get(category, 0) + 1

        condition = product.get("condition")
        if condition is not None and condition not in conditions:
            conditions.append(condition)

        variants = product.get("variants")
        if variants:
            sizes.update(v["size"] for v in variants)
        else:
            sizes.update(product.get("sizes") or [])

        price = product.get("price")
        if price is not None:
            min_price = price if min_price is None else min(min_price, price)
            max_price = price if max_price is None else max(max_price, price)

    return {
        "total": len(products),
        "by_category": by_category,
        "price_range": {"min": min_price, "max": max_price},
        "conditions": conditions,
        "sizes": sorted(sizes),
    }
