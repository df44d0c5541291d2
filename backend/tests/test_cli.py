"""CLI command tests (flask catalog ..., flask users ...)."""

import json

from storefront import create_app
from storefront.extensions import db
from storefront.services.auth_service import verify_password

from conftest import remote_config


def test_check_connection_static(static_app):
    result = static_app.test_cli_runner().invoke(args=["catalog", "check-connection"])
    assert result.exit_code == 0
    assert "not configured" in result.output


def test_check_connection_remote(remote_app):
    result = remote_app.test_cli_runner().invoke(args=["catalog", "check-connection"])
    assert result.exit_code == 0
    assert "OK: 5 product rows" in result.output


def test_check_connection_failure(broken_remote_app):
    result = broken_remote_app.test_cli_runner().invoke(args=["catalog", "check-connection"])
    assert result.exit_code != 0
    assert "query failed" in result.output


def test_stats(static_app):
    result = static_app.test_cli_runner().invoke(args=["catalog", "stats"])
    assert result.exit_code == 0
    stats = json.loads(result.output.split("(served by")[0])
    assert stats["total"] == 8
    assert "(served by: static)" in result.output


def test_init_db_requires_remote(static_app):
    result = static_app.test_cli_runner().invoke(args=["catalog", "init-db", "--yes"])
    assert result.exit_code != 0


def test_init_db_creates_tables():
    app = create_app(remote_config())
    runner = app.test_cli_runner()

    assert "Refusing" in runner.invoke(args=["catalog", "init-db"]).output

    result = runner.invoke(args=["catalog", "init-db", "--yes"])
    assert result.exit_code == 0
    assert "OK: 0 product rows" in runner.invoke(args=["catalog", "check-connection"]).output

    with app.app_context():
        db.drop_all()


def test_hash_password(static_app):
    runner = static_app.test_cli_runner()
    result = runner.invoke(args=["users", "hash-password", "--password", "Str0ng!Pass"])
    assert result.exit_code == 0
    assert verify_password("Str0ng!Pass", result.output.strip())

    weak = runner.invoke(args=["users", "hash-password", "--password", "weak"])
    assert weak.exit_code != 0
