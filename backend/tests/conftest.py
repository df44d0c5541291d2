"""
Pytest fixtures for storefront backend tests.

Provides apps for each catalog source configuration, a seeded in-memory
remote catalog, a fake clock, and auth helpers.
"""

from datetime import datetime, timedelta

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.models import Category, Product, ProductImage, ProductVariant
from storefront.services.auth_service import ROLE_MODERATOR, ROLE_VIEWER
from storefront.state import get_admin_state

ADMIN_EMAIL = "admin@storefront.test"
ADMIN_PASSWORD = "Admin-Pass-123!"
USER_PASSWORD = "Str0ng!Pass"

# Flask's test client talks to http://localhost
SAME_ORIGIN = {"Origin": "http://localhost"}


class FakeClock:
    """Manually advanced clock; callable like time.monotonic / utcnow."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, amount):
        self.now = self.now + amount
        return self.now


def base_config(**overrides) -> dict:
    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "SESSION_SIGNING_SECRET": "test-signing-secret-0123456789abcdef",
        "ADMIN_DEFAULT_EMAIL": ADMIN_EMAIL,
        "ADMIN_DEFAULT_PASSWORD": ADMIN_PASSWORD,
        "MAINTENANCE_SWEEP_SECONDS": 0,
        "SESSION_COOKIE_SECURE": False,
        "CATALOG_DATABASE_URL": None,
        "CATALOG_ANON_KEY": None,
        "CATALOG_SERVICE_KEY": None,
        "WHATSAPP_PHONE": None,
        "LOG_LEVEL": "WARNING",
    }
    config.update(overrides)
    return config


def remote_config(**overrides) -> dict:
    return base_config(
        CATALOG_DATABASE_URL="sqlite://",
        CATALOG_SERVICE_KEY="service-key",
        **overrides,
    )


def seed_catalog() -> dict:
    """
    Insert a small catalog directly through the models.

    Returns {name: id} for products and {slug: id} for categories.
    """
    camisetas = Category(name="Camisetas", slug="camisetas", sort_order=1)
    pantalones = Category(name="Pantalones", slug="pantalones", sort_order=2)
    accesorios = Category(name="Accesorios", slug="accesorios", sort_order=3)
    db.session.add_all([camisetas, pantalones, accesorios])
    db.session.flush()

    base = datetime(2024, 1, 1, 12, 0, 0)
    rows = [
        ("Camiseta Roja", 30000, camisetas, ["rojo", "algodon"], ["M", "L"], True, True),
        ("Camiseta Azul", 35000, camisetas, ["azul"], ["S"], False, True),
        ("Jean Slim", 90000, pantalones, ["denim"], ["32"], False, True),
        ("Gorra Negra", 20000, accesorios, ["gorra"], [], False, True),
        ("Camiseta Retirada", 15000, camisetas, [], [], False, False),
    ]
    ids = {}
    for offset, (name, price, category, tags, sizes, featured, active) in enumerate(rows):
        p = Product(
            name=name,
            slug=name.lower().replace(" ", "-"),
            description=f"{name} de prueba",
            price=price,
            category_id=category.id,
            condition="usado",
            featured=featured,
            tags=tags,
            is_active=active,
            stock_quantity=5,
            stock_status="available",
            min_stock_level=1,
            max_stock_level=100,
            created_at=base + timedelta(days=offset),
            updated_at=base + timedelta(days=offset),
        )
        p.images.append(ProductImage(image_url=f"/img/{p.slug}.jpg", alt_text=name, is_primary=True, sort_order=0))
        for size in sizes:
            p.variants.append(ProductVariant(size=size, stock_quantity=1, is_available=True))
        db.session.add(p)
        db.session.flush()
        ids[name] = p.id

    ids.update({c.slug: c.id for c in (camisetas, pantalones, accesorios)})
    db.session.commit()
    return ids


@pytest.fixture()
def static_app():
    """Application with no remote catalog configured."""
    return create_app(base_config())


@pytest.fixture()
def remote_app():
    """Application backed by a seeded in-memory SQLite catalog (writable)."""
    app = create_app(remote_config())
    with app.app_context():
        db.create_all()
        app.config["SEED_IDS"] = seed_catalog()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def readonly_remote_app():
    """Remote catalog reachable with the anon key only (reads, no writes)."""
    app = create_app(base_config(CATALOG_DATABASE_URL="sqlite://", CATALOG_ANON_KEY="anon-key"))
    with app.app_context():
        db.create_all()
        app.config["SEED_IDS"] = seed_catalog()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def broken_remote_app():
    """Remote catalog configured but every query fails (no tables)."""
    return create_app(remote_config())


@pytest.fixture()
def client(static_app):
    return static_app.test_client()


@pytest.fixture()
def remote_client(remote_app):
    return remote_app.test_client()


@pytest.fixture()
def clock():
    return FakeClock()


def login(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD, **headers):
    """POST /api/admin/login from the same origin; returns the response."""
    return client.post(
        "/api/admin/login",
        json={"email": email, "password": password},
        headers={**SAME_ORIGIN, **headers},
    )


def create_user(app, *, role=ROLE_VIEWER, username=None, email=None):
    """Create an admin-layer user directly in the app's UserStore."""
    username = username or f"{role}-user"
    email = email or f"{role}@storefront.test"
    with app.app_context():
        return get_admin_state().users.create_user(
            username=username,
            email=email,
            password=USER_PASSWORD,
            role=role,
        )


@pytest.fixture()
def admin_client(remote_app):
    """Test client logged in as the bootstrap admin on the remote app."""
    c = remote_app.test_client()
    assert login(c).status_code == 200
    return c


@pytest.fixture()
def moderator_client(remote_app):
    create_user(remote_app, role=ROLE_MODERATOR)
    c = remote_app.test_client()
    assert login(c, email="moderator@storefront.test", password=USER_PASSWORD).status_code == 200
    return c


@pytest.fixture()
def viewer_client(remote_app):
    create_user(remote_app, role=ROLE_VIEWER)
    c = remote_app.test_client()
    assert login(c, email="viewer@storefront.test", password=USER_PASSWORD).status_code == 200
    return c
