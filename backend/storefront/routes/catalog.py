# Overview: Public category, stats and site-config endpoints.

from flask import Blueprint

from ..services.catalog_service import get_catalog

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/categories")
def list_categories():
    return {"categories": get_catalog().get_all_categories()}


@catalog_bp.get("/categories/<slug>")
def get_category(slug: str):
    category = get_catalog().get_category_by_slug(slug)
    if category is None:
        return {"error": "Category not found"}, 404
    return category


@catalog_bp.get("/categories/<slug>/products")
def category_products(slug: str):
    catalog = get_catalog()
    category = catalog.get_category_by_slug(slug)
    if category is None:
        return {"error": "Category not found"}, 404
    return {"category": category, "products": catalog.get_products_by_category(slug)}


@catalog_bp.get("/stats")
def catalog_stats():
    """Totals, per-category counts, price range, conditions and sizes."""
    return get_catalog().get_product_stats()


@catalog_bp.get("/site-config")
def site_config():
    return get_catalog().get_site_config()
