# backend/storefront/__init__.py
from __future__ import annotations

import logging

from flask import Flask, g
from sqlalchemy.engine import make_url

from .config import DEFAULT_SECRET_KEY, Config
from .extensions import db, migrate
from .services.catalog_service import EXTENSION_KEY as CATALOG_EXTENSION_KEY
from .services.catalog_service import CatalogService
from .services.catalog_sources import DatabaseCatalogSource, StaticCatalogSource
from .state import init_admin_state

CATALOG_SOURCE_HEADER = "X-Catalog-Source"


def _catalog_database_uri(cfg) -> str | None:
    """
    SQLAlchemy URI for the remote catalog, or None when it is not readable.

    Readable needs the URL plus the anon or the service key. For Postgres URLs
    without a password the key is used as the password (service key first).
    """
    url = cfg.get("CATALOG_DATABASE_URL")
    key = cfg.get("CATALOG_SERVICE_KEY") or cfg.get("CATALOG_ANON_KEY")
    if not url or not key:
        return None

    parsed = make_url(url)
    if parsed.get_backend_name() == "postgresql" and not parsed.password:
        parsed = parsed.set(password=key)
        return parsed.render_as_string(hide_password=False)
    return url


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    signing_secret = app.config.get("SESSION_SIGNING_SECRET") or app.config["SECRET_KEY"]
    if signing_secret == DEFAULT_SECRET_KEY and not app.config.get("TESTING"):
        app.logger.warning(
            "Session tokens are signed with the built-in development key; "
            "set SESSION_SIGNING_SECRET or SECRET_KEY"
        )

    # Catalog source is chosen once, here
    static_source = StaticCatalogSource(app.config["CATALOG_DATA_DIR"])
    remote_source = None
    database_uri = _catalog_database_uri(app.config)
    if database_uri:
        app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
        db.init_app(app)
        migrate.init_app(app, db)

        # Import models so Alembic can discover metadata reliably
        from . import models  # noqa: F401

        remote_source = DatabaseCatalogSource(writable=bool(app.config.get("CATALOG_SERVICE_KEY")))
        app.logger.info("Catalog: remote database (writable=%s)", remote_source.writable)
    else:
        app.logger.warning("Catalog: remote database not configured, serving static catalog data")

    app.extensions[CATALOG_EXTENSION_KEY] = CatalogService(
        static=static_source,
        remote=remote_source,
        logger=app.logger,
        page_size=app.config["PRODUCTS_PAGE_SIZE"],
    )

    # Raises ConfigurationError when ADMIN_DEFAULT_PASSWORD is missing
    init_admin_state(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.catalog import catalog_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)

    @app.after_request
    def add_catalog_source_header(response):
        served_by = g.get("catalog_served_by")
        if served_by is not None:
            response.headers[CATALOG_SOURCE_HEADER] = served_by
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
