# Overview: Public product API; listing with search/filter/sort/paginate, details and cart status.

"""
Public product routes. No authentication; every read goes through the
CatalogService, so the database and static sources answer identically.

Listing, detail views and checkout handoffs are counted in the in-process
analytics held by AdminState.
"""
from flask import Blueprint, current_app, request

from ..decorators import client_ip, log_security_event
from ..services.catalog_service import get_catalog
from ..services.checkout_service import generate_whatsapp_url
from ..services.product_query_service import DEFAULT_RELATED_LIMIT, ProductFilter
from ..services.security_log_service import SEVERITY_HIGH, SQL_INJECTION_ATTEMPT, XSS_ATTEMPT
from ..state import get_admin_state
from ..validation import (
    INJECTION_MARKUP,
    ValidationError,
    detect_injection,
    parse_product_ids,
    sanitize_query_param,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

MAX_PAGE_SIZE = 100

TEXT_PARAMS = ("q", "category", "condition", "gender", "sizes", "tags", "sort", "order")


def _screened_text_args() -> dict[str, list[str]]:
    """
    Text query params cleaned with sanitize_query_param.

    A raw value carrying markup or an SQL fragment is recorded as an
    XSS_ATTEMPT / SQL_INJECTION_ATTEMPT event; the listing is still answered
    from the cleaned values.
    """
    screened = {}
    for name in TEXT_PARAMS:
        values = []
        for raw in request.args.getlist(name):
            threat = detect_injection(raw)
            if threat is not None:
                event_type = XSS_ATTEMPT if threat == INJECTION_MARKUP else SQL_INJECTION_ATTEMPT
                log_security_event(event_type, severity=SEVERITY_HIGH, param=name, value=raw)
            cleaned = sanitize_query_param(raw)
            if cleaned:
                values.append(cleaned)
        screened[name] = values
    return screened


def _first(args: dict[str, list[str]], name: str) -> str | None:
    values = args.get(name)
    return values[0] if values else None


def _csv_values(args: dict[str, list[str]], name: str) -> list[str]:
    """?sizes=S,M&sizes=L -> ["S", "M", "L"]"""
    values = []
    for raw in args.get(name, []):
        values.extend(part.strip() for part in raw.split(",") if part.strip())
    return values


def _int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _product_filter_from_args(args: dict[str, list[str]]) -> ProductFilter:
    return ProductFilter(
        category=_first(args, "category"),
        min_price=_int_arg("min_price"),
        max_price=_int_arg("max_price"),
        condition=_first(args, "condition"),
        sizes=_csv_values(args, "sizes"),
        tags=_csv_values(args, "tags"),
        gender=_first(args, "gender"),
    )


@products_bp.get("")
def list_products():
    """
    List active products.

    Query params:
    - q: search text (name, description, tags, category)
    - category, condition, gender: exact match
    - min_price, max_price: inclusive integer bounds
    - sizes, tags: comma separated; any-of match
    - sort: name | price | created_at; order: asc | desc
    - page: 1-indexed (default 1); limit: page size (default 12, max 100)

    Text params have <>"'& and control characters stripped and are capped
    at 100 characters.
    """
    catalog = get_catalog()
    args = _screened_text_args()
    try:
        product_filter = _product_filter_from_args(args)
        page = _int_arg("page", 1)
        limit = _int_arg("limit", catalog.page_size)
    except ValidationError as e:
        return {"error": str(e)}, 400

    if limit < 1 or limit > MAX_PAGE_SIZE:
        return {"error": f"limit must be between 1 and {MAX_PAGE_SIZE}"}, 400

    order = (_first(args, "order") or "asc").lower()
    result = catalog.query_products(
        query=_first(args, "q"),
        product_filter=product_filter,
        sort_by=_first(args, "sort"),
        sort_order="desc" if order == "desc" else "asc",
        page=page,
        limit=limit,
    )
    get_admin_state().analytics.record_page_view(request.path, ip=client_ip())
    return result


@products_bp.get("/featured")
def featured_products():
    return {"products": get_catalog().get_featured_products()}


@products_bp.post("/status")
def product_statuses():
    """
    Batch availability for cart items.

    Body: {"productIds": ["<id>", ...]}

    Returns {"statuses": {id: {status, stock_quantity, stock_status, available}}}.
    Unknown ids report status "missing"; soft-deleted products report "inactive".
    """
    payload = request.get_json(silent=True)
    try:
        product_ids = parse_product_ids(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        found = get_catalog().get_product_statuses(product_ids)
    except Exception:
        current_app.logger.exception("Failed to check product statuses")
        return {"error": "Internal server error"}, 500

    statuses = {}
    for pid in product_ids:
        statuses[pid] = found.get(pid) or {
            "status": "missing",
            "stock_quantity": 0,
            "stock_status": None,
            "available": False,
        }
    return {"statuses": statuses}


@products_bp.get("/<product_id>")
def get_product(product_id: str):
    product = get_catalog().get_product_by_id(product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    get_admin_state().analytics.record_product_view(product["id"], ip=client_ip())
    return product


@products_bp.get("/<product_id>/related")
def related_products(product_id: str):
    catalog = get_catalog()
    product = catalog.get_product_by_id(product_id)
    if product is None:
        return {"error": "Product not found"}, 404

    limit = request.args.get("limit", DEFAULT_RELATED_LIMIT, type=int)
    limit = max(1, min(limit, 24))
    return {"products": catalog.get_related_products(product, limit)}


@products_bp.get("/<product_id>/whatsapp")
def whatsapp_link(product_id: str):
    """Checkout handoff: the wa.me link that opens a chat about this product."""
    catalog = get_catalog()
    product = catalog.get_product_by_id(product_id)
    if product is None:
        return {"error": "Product not found"}, 404

    site = catalog.get_site_config()
    phone = current_app.config.get("WHATSAPP_PHONE") or site.get("whatsapp")
    url = generate_whatsapp_url(product, request.args.get("message"), phone=phone)
    get_admin_state().analytics.record_user_action("whatsapp_checkout", product_id=product["id"], ip=client_ip())
    return {"url": url}
