# Overview: Admin API; product writes, stock adjustments, ledgers, users and the security log.

"""
Admin routes.

Every route is rate-limited (admin policy), CSRF-checked on mutating
methods, authenticated, and role-gated:

- viewer:    read stock movements and product history
- moderator: list, create and update products, adjust stock
- admin:     delete products, manage users, read the security log and analytics
"""
from flask import Blueprint, Response, current_app, g, request

from ..decorators import csrf_protect, log_security_event, rate_limited, require_auth, require_role
from ..services.auth_service import ROLE_ADMIN, ROLE_MODERATOR, ROLE_VIEWER, PasswordValidationError
from ..services.catalog_service import CatalogUnavailableError, CatalogWriteError, get_catalog
from ..services.inventory_service import ProductNotFoundError
from ..services.security_log_service import INPUT_VALIDATION_FAILED, SEVERITY_LOW, USER_CREATED
from ..state import get_admin_state
from ..validation import ConflictError, ValidationError, validate_product_payload

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _actor() -> str:
    return g.current_user.email or g.current_user.user_id


def _catalog_error(e: Exception):
    """Map catalog write failures to responses."""
    if isinstance(e, CatalogUnavailableError):
        return {"error": str(e)}, 503
    current_app.logger.error("Catalog write failed: %s", e)
    return {"error": str(e)}, 500


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

@admin_bp.get("/products")
@rate_limited("admin")
@require_auth
@require_role(ROLE_MODERATOR)
def list_products_route():
    return {"products": get_catalog().list_admin_products()}


@admin_bp.post("/products")
@rate_limited("admin")
@csrf_protect
@require_auth
@require_role(ROLE_MODERATOR)
def create_product_route():
    """
    Create a product.

    Body: product fields (name and price required) plus optional
    "images" ([{url, alt, primary}] or [url]) and "sizes" ([label]).
    """
    payload = request.get_json(silent=True)
    try:
        patch, images, sizes = validate_product_payload(payload, partial=False)
    except ValidationError as e:
        log_security_event(INPUT_VALIDATION_FAILED, severity=SEVERITY_LOW, reason=str(e))
        return {"error": str(e)}, 400

    try:
        created = get_catalog().create_product(patch, images=images, sizes=sizes, actor=_actor())
    except ConflictError as e:
        return {"error": str(e)}, 409
    except (CatalogUnavailableError, CatalogWriteError) as e:
        return _catalog_error(e)

    return created, 201


@admin_bp.put("/products/<product_id>")
@rate_limited("admin")
@csrf_protect
@require_auth
@require_role(ROLE_MODERATOR)
def update_product_route(product_id: str):
    """Partial update; stock changes go through the stock endpoint instead."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and "stock_quantity" in payload:
        return {"error": "Use POST /api/admin/products/<id>/stock to change stock"}, 400
    if isinstance(payload, dict) and ("images" in payload or "sizes" in payload):
        return {"error": "images and sizes can only be set when creating a product"}, 400

    try:
        patch, _, _ = validate_product_payload(payload, partial=True)
    except ValidationError as e:
        log_security_event(INPUT_VALIDATION_FAILED, severity=SEVERITY_LOW, reason=str(e))
        return {"error": str(e)}, 400

    try:
        updated = get_catalog().update_product(product_id, patch, actor=_actor())
    except ConflictError as e:
        return {"error": str(e)}, 409
    except (CatalogUnavailableError, CatalogWriteError) as e:
        return _catalog_error(e)

    if updated is None:
        return {"error": "Product not found"}, 404
    return updated


@admin_bp.delete("/products/<product_id>")
@rate_limited("admin")
@csrf_protect
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: str):
    """Soft delete (is_active=False)."""
    try:
        deleted = get_catalog().delete_product(product_id, actor=_actor())
    except (CatalogUnavailableError, CatalogWriteError) as e:
        return _catalog_error(e)

    if deleted is None:
        return {"error": "Product not found"}, 404
    return deleted


@admin_bp.post("/products/<product_id>/stock")
@rate_limited("admin")
@csrf_protect
@require_auth
@require_role(ROLE_MODERATOR)
def update_stock_route(product_id: str):
    """
    Set stock to an absolute quantity.

    Body: {"quantity": int >= 0, "reason"?: str, "reference_id"?: str, "notes"?: str}
    """
    data = request.get_json(silent=True) or {}
    quantity = data.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return {"error": "quantity must be an integer"}, 400

    try:
        product = get_catalog().update_stock(
            product_id,
            quantity,
            reason=str(data.get("reason") or "adjustment")[:64],
            reference_id=str(data["reference_id"])[:64] if data.get("reference_id") else None,
            notes=data.get("notes"),
            actor=_actor(),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404
    except (CatalogUnavailableError, CatalogWriteError) as e:
        return _catalog_error(e)

    return product


@admin_bp.get("/products/<product_id>/movements")
@rate_limited("admin")
@require_auth
@require_role(ROLE_VIEWER)
def stock_movements_route(product_id: str):
    try:
        return {"movements": get_catalog().list_stock_movements(product_id)}
    except CatalogUnavailableError as e:
        return {"error": str(e)}, 503


@admin_bp.get("/products/<product_id>/history")
@rate_limited("admin")
@require_auth
@require_role(ROLE_VIEWER)
def product_history_route(product_id: str):
    try:
        return {"history": get_catalog().list_product_history(product_id)}
    except CatalogUnavailableError as e:
        return {"error": str(e)}, 503


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@admin_bp.get("/users")
@rate_limited("admin")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    return {"users": [u.to_dict() for u in get_admin_state().users.all_users()]}


@admin_bp.post("/users")
@rate_limited("admin")
@csrf_protect
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """Body: {"username", "email", "password", "role"?: viewer|moderator|admin}"""
    data = request.get_json(silent=True) or {}
    try:
        user = get_admin_state().users.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password") or "",
            role=data.get("role") or ROLE_VIEWER,
        )
    except PasswordValidationError as e:
        return {"error": str(e)}, 400
    except ValueError as e:
        return {"error": str(e)}, 400

    log_security_event(USER_CREATED, severity=SEVERITY_LOW, new_user_id=user.id, role=user.role)
    return {"user": user.to_dict()}, 201


# ---------------------------------------------------------------------------
# Security log
# ---------------------------------------------------------------------------

@admin_bp.get("/security/logs")
@rate_limited("admin")
@require_auth
@require_role(ROLE_ADMIN)
def security_logs_route():
    limit = max(1, min(request.args.get("limit", 100, type=int), 1000))
    event_type = request.args.get("event_type") or None
    return {"events": get_admin_state().security_log.recent(limit, event_type=event_type)}


@admin_bp.get("/security/stats")
@rate_limited("admin")
@require_auth
@require_role(ROLE_ADMIN)
def security_stats_route():
    return get_admin_state().security_log.stats()


@admin_bp.get("/security/alerts")
@rate_limited("admin")
@require_auth
@require_role(ROLE_ADMIN)
def security_alerts_route():
    return {"alerts": get_admin_state().security_log.alerts()}


@admin_bp.get("/security/export")
@rate_limited("admin")
@require_auth
@require_role(ROLE_ADMIN)
def security_export_route():
    fmt = request.args.get("format", "json").lower()
    try:
        body = get_admin_state().security_log.export(fmt)
    except ValueError as e:
        return {"error": str(e)}, 400

    mimetype = "text/csv" if fmt == "csv" else "application/json"
    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename=security-log.{fmt}"},
    )


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

@admin_bp.get("/analytics")
@rate_limited("admin")
@require_auth
@require_role(ROLE_ADMIN)
def analytics_route():
    return get_admin_state().analytics.summary()
