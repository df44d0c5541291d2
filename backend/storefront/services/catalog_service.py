# Overview: Catalog facade; remote-first reads with static fallback, gated writes.

"""
Catalog Service

SOURCE SELECTION (resolved once, at construction):
- remote configured (endpoint + credential): DatabaseCatalogSource answers,
  StaticCatalogSource stands by
- otherwise: StaticCatalogSource answers everything

READ FAILURES:
Any SQLAlchemyError from the remote source is logged at WARNING, the session
is rolled back and the static source answers. Callers get the same shape
either way; the CatalogHealth record and the per-request "served_by" tag are
the only places the difference shows.

WRITES:
No fallback. Without the service credential a write raises
CatalogUnavailableError; a database error during a write raises
CatalogWriteError.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, TypeVar

from flask import current_app, g, has_request_context
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from . import inventory_service, products_service
from .catalog_sources import DatabaseCatalogSource, StaticCatalogSource
from .product_query_service import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_RELATED_LIMIT,
    ProductFilter,
    compute_product_stats,
    filter_products,
    paginate_products,
    sort_products,
)
from storefront.time_utils import to_utc_z, utcnow

T = TypeVar("T")

SERVED_REMOTE = "remote"
SERVED_STATIC = "static"
SERVED_FALLBACK = "fallback"

EXTENSION_KEY = "storefront.catalog"


class CatalogUnavailableError(RuntimeError):
    """The remote catalog capability an operation needs is not configured or not reachable."""


class CatalogWriteError(RuntimeError):
    """The remote catalog rejected or failed a write."""


@dataclass
class CatalogHealth:
    """Observable state of the catalog sources."""
    configured_source: str
    writable: bool
    last_served_by: str | None = None
    fallback_count: int = 0
    last_fallback_at: datetime | None = None
    last_fallback_operation: str | None = None
    last_error: str | None = None
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "configured_source": self.configured_source,
            "writable": self.writable,
            "last_served_by": self.last_served_by,
            "degraded": self.degraded,
            "fallback_count": self.fallback_count,
            "last_fallback_at": to_utc_z(self.last_fallback_at),
            "last_fallback_operation": self.last_fallback_operation,
            "last_error": self.last_error,
        }


@dataclass
class CatalogService:
    static: StaticCatalogSource
    remote: DatabaseCatalogSource | None = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    page_size: int = DEFAULT_PAGE_SIZE
    health: CatalogHealth = field(init=False)

    def __post_init__(self):
        self.health = CatalogHealth(
            configured_source=SERVED_REMOTE if self.remote else SERVED_STATIC,
            writable=bool(self.remote and self.remote.writable),
        )

    # ------------------------------------------------------------------
    # Source dispatch
    # ------------------------------------------------------------------

    def _mark_served(self, served_by: str) -> None:
        self.health.last_served_by = served_by
        if has_request_context():
            previous = getattr(g, "catalog_served_by", None)
            # A request that fell back once stays marked as fallback.
            if previous != SERVED_FALLBACK:
                g.catalog_served_by = served_by

    def _read(self, operation: str, remote_call: Callable[[DatabaseCatalogSource], T],
              static_call: Callable[[StaticCatalogSource], T]) -> T:
        if self.remote is None:
            self._mark_served(SERVED_STATIC)
            return static_call(self.static)

        try:
            result = remote_call(self.remote)
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.warning(
                "Catalog %s failed on remote source, falling back to static data: %s",
                operation, exc,
            )
            self.health.fallback_count += 1
            self.health.last_fallback_at = utcnow()
            self.health.last_fallback_operation = operation
            self.health.last_error = str(exc).splitlines()[0] if str(exc) else type(exc).__name__
            self.health.degraded = True
            self._mark_served(SERVED_FALLBACK)
            return static_call(self.static)

        self.health.degraded = False
        self._mark_served(SERVED_REMOTE)
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_products(self) -> list[dict]:
        return self._read("get_all_products", lambda s: s.all_products(), lambda s: s.all_products())

    def get_featured_products(self) -> list[dict]:
        return self._read("get_featured_products", lambda s: s.featured_products(), lambda s: s.featured_products())

    def get_product_by_id(self, product_id: str) -> dict | None:
        return self._read(
            "get_product_by_id",
            lambda s: s.product_by_id(product_id),
            lambda s: s.product_by_id(product_id),
        )

    def get_products_by_category(self, category_slug: str) -> list[dict]:
        return self._read(
            "get_products_by_category",
            lambda s: s.products_by_category(category_slug),
            lambda s: s.products_by_category(category_slug),
        )

    def search_products(self, query: str | None) -> list[dict]:
        return self._read("search_products", lambda s: s.search(query), lambda s: s.search(query))

    def get_all_categories(self) -> list[dict]:
        return self._read("get_all_categories", lambda s: s.categories(), lambda s: s.categories())

    def get_category_by_slug(self, slug: str) -> dict | None:
        return self._read(
            "get_category_by_slug",
            lambda s: s.category_by_slug(slug),
            lambda s: s.category_by_slug(slug),
        )

    def get_category_by_id(self, category_id: str) -> dict | None:
        return self._read(
            "get_category_by_id",
            lambda s: s.category_by_id(category_id),
            lambda s: s.category_by_id(category_id),
        )

    def get_related_products(self, product: dict, limit: int = DEFAULT_RELATED_LIMIT) -> list[dict]:
        return self._read(
            "get_related_products",
            lambda s: s.related(product, limit),
            lambda s: s.related(product, limit),
        )

    def get_product_statuses(self, product_ids: list[str]) -> dict[str, dict]:
        return self._read(
            "get_product_statuses",
            lambda s: s.product_statuses(product_ids),
            lambda s: s.product_statuses(product_ids),
        )

    def list_admin_products(self) -> list[dict]:
        """Every product, soft-deleted ones included where the source keeps them."""
        return self._read(
            "list_admin_products",
            lambda s: products_service.list_products(include_inactive=True),
            lambda s: s.all_products(),
        )

    def get_product_stats(self) -> dict:
        return compute_product_stats(self.get_all_products())

    def get_site_config(self) -> dict:
        return self.static.site_config()

    def query_products(
        self,
        *,
        query: str | None = None,
        product_filter: ProductFilter | None = None,
        sort_by: str | None = None,
        sort_order: str = "asc",
        page: int = 1,
        limit: int | None = None,
    ) -> dict:
        """Search, then filter, then sort, then paginate."""
        products = self.search_products(query)
        products = filter_products(products, product_filter)
        products = sort_products(products, sort_by, sort_order)
        return paginate_products(products, page, limit or self.page_size)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _require_writable(self, capability: str) -> None:
        if self.remote is None:
            raise CatalogUnavailableError(
                f"Cannot {capability}: remote catalog database is not configured "
                "(static catalog data is read-only)"
            )
        if not self.remote.writable:
            raise CatalogUnavailableError(
                f"Cannot {capability}: catalog service credential is not configured"
            )

    def _write(self, capability: str, call: Callable[[], T]) -> T:
        self._require_writable(capability)
        try:
            return call()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error("Catalog write failed (%s): %s", capability, exc)
            raise CatalogWriteError(f"Could not {capability}: {exc}") from exc

    def create_product(self, patch: dict, *, images=None, sizes=None, actor: str = "admin") -> dict:
        return self._write(
            "create products",
            lambda: products_service.create_product(patch=patch, images=images, sizes=sizes, actor=actor),
        )

    def update_product(self, product_id: str, patch: dict, *, actor: str = "admin") -> dict | None:
        return self._write(
            "update products",
            lambda: products_service.update_product(product_id=product_id, patch=patch, actor=actor),
        )

    def delete_product(self, product_id: str, *, actor: str = "admin") -> dict | None:
        return self._write(
            "delete products",
            lambda: products_service.delete_product(product_id=product_id, actor=actor),
        )

    def update_stock(
        self,
        product_id: str,
        new_quantity: int,
        reason: str = "adjustment",
        reference_id: str | None = None,
        notes: str | None = None,
        *,
        actor: str = "admin",
    ) -> dict:
        return self._write(
            "update stock",
            lambda: inventory_service.update_stock(
                product_id=product_id,
                new_quantity=new_quantity,
                reason=reason,
                reference_id=reference_id,
                notes=notes,
                actor=actor,
            ),
        )

    def list_stock_movements(self, product_id: str) -> list[dict]:
        return self._read_ledger("stock movements", lambda: inventory_service.list_stock_movements(product_id))

    def list_product_history(self, product_id: str) -> list[dict]:
        return self._read_ledger("product history", lambda: inventory_service.list_product_history(product_id))

    def _read_ledger(self, ledger: str, call: Callable[[], T]) -> T:
        # Ledgers only exist in the database; there is nothing to fall back to.
        if self.remote is None:
            raise CatalogUnavailableError(
                f"Reading {ledger} requires the remote catalog database"
            )
        try:
            return call()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.warning("Could not read %s: %s", ledger, exc)
            raise CatalogUnavailableError(f"The {ledger} ledger is unavailable") from exc


def get_catalog() -> CatalogService:
    return current_app.extensions[EXTENSION_KEY]
