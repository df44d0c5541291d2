from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import Product


# Maximum price: 999,999,999 in the smallest currency unit
MAX_PRICE = 999_999_999

QUERY_PARAM_MAX_LENGTH = 100

_UNSAFE_PARAM_CHARS = re.compile(r"[<>\"'&\x00-\x1f\x7f-\x9f]")
_MARKUP_RE = re.compile(r"<\s*/?\s*[a-z!]|javascript\s*:|\bon[a-z]+\s*=", re.IGNORECASE)
_SQL_RE = re.compile(
    r"\bunion\b.*\bselect\b|'\s*or\s+'?\w+'?\s*=|;\s*--|\b(?:drop|truncate)\s+table\b",
    re.IGNORECASE,
)

INJECTION_MARKUP = "markup"
INJECTION_SQL = "sql"


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: non-column keys the route handles itself (images, sizes)
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()
    extra_fields: set[str] = frozenset()


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "price", "category_id", "condition", "featured",
        "tags", "gender", "is_active", "stock_quantity", "min_stock_level",
        "max_stock_level", "sku", "weight", "dimensions",
    },
    required_on_create={"name", "price"},
    extra_fields={"images", "sizes"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_str_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be an array")
    cleaned = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{key} must contain only strings")
        item = item.strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    # JSON columns on Product are string arrays (tags)
    if isinstance(coltype, JSON):
        return _coerce_str_list(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable column fields.
    Keys in policy.extra_fields are passed over here and left to the caller.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k in policy.extra_fields:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in policy.extra_fields:
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if patch.get("price") is not None:
        price = patch["price"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed {MAX_PRICE}")

    for field in ("stock_quantity", "min_stock_level", "max_stock_level"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")

    lo, hi = patch.get("min_stock_level"), patch.get("max_stock_level")
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError("min_stock_level cannot exceed max_stock_level")

    if patch.get("weight") is not None and patch["weight"] < 0:
        raise ValidationError("weight must be >= 0")


def _validate_images(raw: Any) -> list[dict]:
    if not isinstance(raw, list):
        raise ValidationError("images must be an array")
    images = []
    for item in raw:
        if isinstance(item, str):
            item = {"url": item}
        if not isinstance(item, dict) or not str(item.get("url") or "").strip():
            raise ValidationError("each image needs a url")
        url = str(item["url"]).strip()
        if len(url) > 512:
            raise ValidationError("image url exceeds max length 512")
        images.append({
            "url": url,
            "alt": str(item.get("alt") or "").strip(),
            "primary": bool(item.get("primary", False)),
        })
    if images and not any(img["primary"] for img in images):
        images[0]["primary"] = True
    return images


def validate_product_payload(payload: dict, *, partial: bool) -> tuple[dict, list[dict] | None, list[str] | None]:
    """
    Full product payload validation for the admin create/update routes.

    Returns (patch, images, sizes); images/sizes are None when absent.
    """
    if payload is None:
        payload = {}
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)

    images = _validate_images(payload["images"]) if payload.get("images") is not None else None
    sizes = _coerce_str_list("sizes", payload["sizes"]) if payload.get("sizes") is not None else None
    return patch, images, sizes


def parse_product_ids(payload: Any) -> list[str]:
    """Body of POST /api/products/status: {"productIds": [non-empty strings]}."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    ids = payload.get("productIds")
    if not isinstance(ids, list) or not ids:
        raise ValidationError("productIds must be a non-empty array")
    if not all(isinstance(pid, (str, int)) and not isinstance(pid, bool) for pid in ids):
        raise ValidationError("productIds must contain only ids")
    return [str(pid) for pid in ids]


def sanitize_query_param(value: str | None, max_length: int = QUERY_PARAM_MAX_LENGTH) -> str | None:
    """Strip <>"'& and control characters, trim, cap at max_length. Blank -> None."""
    if not value or not isinstance(value, str):
        return None
    cleaned = _UNSAFE_PARAM_CHARS.sub("", value).strip()
    return cleaned[:max_length] or None


def detect_injection(value: str | None) -> str | None:
    """INJECTION_MARKUP or INJECTION_SQL when the raw value carries either, else None."""
    if not value:
        return None
    if _MARKUP_RE.search(value):
        return INJECTION_MARKUP
    if _SQL_RE.search(value):
        return INJECTION_SQL
    return None
