"""
Admin authentication tests.

Verifies:
- Password strength rule and bcrypt hashing
- Account lockout after 5 failures, released after 15 minutes
- Session tokens: signature, expiry, revocation and idle purge
- Login / logout / me routes, cookie attributes and CSRF origin check
- Startup refuses to run without an admin credential and flags the dev signing key
"""

import logging
from datetime import datetime, timedelta

import pytest

from storefront import create_app
from storefront.config import DEFAULT_SECRET_KEY, ConfigurationError
from storefront.services import auth_service
from storefront.services.auth_service import (
    AccountLockedError,
    PasswordValidationError,
    ROLE_ADMIN,
    ROLE_MODERATOR,
    ROLE_VIEWER,
    UserStore,
    has_role,
    hash_password,
    validate_password_strength,
    verify_password,
)
from storefront.services.session_service import (
    AUTH_COOKIE_NAME,
    SessionStore,
    decode_token,
    issue_token,
    validate_token,
)
from storefront.state import get_admin_state
from storefront.time_utils import utcnow

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, SAME_ORIGIN, FakeClock, base_config, login

SECRET = "unit-test-secret-0123456789abcdef"


# =============================================================================
# PASSWORDS AND ROLES
# =============================================================================


class TestPasswords:

    @pytest.mark.parametrize(
        "password",
        ["Sh0rt!", "alllower1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_hash_and_verify(self):
        hashed = hash_password("Str0ng!Pass")
        assert hashed.startswith("$2b$12$")
        assert verify_password("Str0ng!Pass", hashed)
        assert not verify_password("Str0ng!Pas", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_role_hierarchy(self):
        assert has_role(ROLE_ADMIN, ROLE_MODERATOR)
        assert has_role(ROLE_MODERATOR, ROLE_MODERATOR)
        assert not has_role(ROLE_VIEWER, ROLE_MODERATOR)
        assert not has_role("intern", ROLE_VIEWER)
        assert not has_role(None, ROLE_VIEWER)


# =============================================================================
# USER STORE / LOCKOUT
# =============================================================================


class TestUserStore:

    @pytest.fixture()
    def store_clock(self):
        return FakeClock(datetime(2026, 1, 1, 12, 0, 0))

    @pytest.fixture()
    def store(self, store_clock):
        store = UserStore(clock=store_clock)
        store.create_user(username="mod", email="Mod@Storefront.test", password="Str0ng!Pass", role=ROLE_MODERATOR)
        return store

    def test_find_by_email_or_username(self, store):
        assert store.find("mod@storefront.test").username == "mod"
        assert store.find("MOD@storefront.test").username == "mod"
        assert store.find("mod").email == "mod@storefront.test"
        assert store.find("nobody") is None

    def test_duplicate_user_rejected(self, store):
        with pytest.raises(ValueError):
            store.create_user(username="mod", email="other@storefront.test", password="Str0ng!Pass")

    def test_unknown_role_rejected(self, store):
        with pytest.raises(ValueError):
            store.create_user(username="x", email="x@storefront.test", password="Str0ng!Pass", role="owner")

    def test_weak_password_rejected(self, store):
        with pytest.raises(PasswordValidationError):
            store.create_user(username="x", email="x@storefront.test", password="weak")

    def test_successful_login_resets_counter(self, store):
        store.authenticate("mod", "wrong")
        store.authenticate("mod", "wrong")
        user = store.authenticate("mod", "Str0ng!Pass")
        assert user is not None
        assert user.failed_login_attempts == 0
        assert user.last_login is not None

    def test_locks_after_five_failures(self, store, store_clock):
        for _ in range(5):
            assert store.authenticate("mod", "wrong") is None

        with pytest.raises(AccountLockedError) as exc:
            store.authenticate("mod", "Str0ng!Pass")
        assert exc.value.seconds_remaining == 15 * 60

        store_clock.advance(timedelta(minutes=14))
        with pytest.raises(AccountLockedError):
            store.authenticate("mod", "Str0ng!Pass")

        store_clock.advance(timedelta(minutes=1))
        assert store.authenticate("mod", "Str0ng!Pass") is not None

    def test_inactive_user_cannot_login(self, store):
        store.find("mod").is_active = False
        assert store.authenticate("mod", "Str0ng!Pass") is None

    def test_unknown_account_checks_hash_at_same_cost(self, store, monkeypatch):
        checked = []
        real_verify = auth_service.verify_password

        def recording_verify(password, password_hash):
            checked.append(password_hash.split("$")[2])
            return real_verify(password, password_hash)

        monkeypatch.setattr(auth_service, "verify_password", recording_verify)

        assert store.authenticate("mod", "wrong") is None
        assert store.authenticate("nobody@storefront.test", "wrong") is None
        store.find("mod").is_active = False
        assert store.authenticate("mod", "wrong") is None

        assert checked == [str(auth_service.BCRYPT_ROUNDS)] * 3

    def test_bootstrap_admin_skips_strength_rule(self):
        store = UserStore()
        admin = store.bootstrap_admin(email="Root@Storefront.test", password="simple")
        assert admin.role == ROLE_ADMIN
        assert admin.email == "root@storefront.test"
        assert store.authenticate("root@storefront.test", "simple") is admin


# =============================================================================
# TOKENS AND SESSIONS
# =============================================================================


class TestSessionTokens:

    def _token(self, sessions, now=None):
        session = sessions.create({"user_id": "u1", "email": "a@b.co", "role": ROLE_ADMIN})
        return session, issue_token(
            user_id="u1", email="a@b.co", role=ROLE_ADMIN,
            session_id=session.id, secret=SECRET, now=now,
        )

    def test_valid_token(self):
        sessions = SessionStore()
        session, token = self._token(sessions)
        ctx = validate_token(token, secret=SECRET, sessions=sessions)
        assert ctx.user_id == "u1"
        assert ctx.role == ROLE_ADMIN
        assert ctx.session_id == session.id

    def test_wrong_secret_rejected(self):
        sessions = SessionStore()
        _, token = self._token(sessions)
        assert decode_token(token, secret="another-secret-0123456789abcdefgh") is None

    def test_tampered_token_rejected(self):
        sessions = SessionStore()
        session, token = self._token(sessions)
        elevated = issue_token(
            user_id="u2", email="c@d.co", role=ROLE_ADMIN,
            session_id=session.id, secret="attacker-secret-0123456789abcdef",
        )
        header, _, signature = token.split(".")
        forged = ".".join([header, elevated.split(".")[1], signature])
        assert decode_token(forged, secret=SECRET) is None

    def test_expired_token_rejected(self):
        sessions = SessionStore()
        _, token = self._token(sessions, now=utcnow() - timedelta(hours=25))
        assert decode_token(token, secret=SECRET) is None

    def test_revoked_session_invalidates_token(self):
        sessions = SessionStore()
        session, token = self._token(sessions)
        sessions.revoke(session.id)
        assert validate_token(token, secret=SECRET, sessions=sessions) is None

    def test_idle_sessions_purged(self):
        clock = FakeClock(datetime(2026, 1, 1))
        sessions = SessionStore(clock=clock)
        idle = sessions.create({"user_id": "u1"})
        clock.advance(timedelta(hours=20))
        active = sessions.create({"user_id": "u2"})
        clock.advance(timedelta(hours=5))

        assert sessions.purge_expired() == 1
        assert sessions.touch(idle.id) is None
        assert sessions.touch(active.id) is not None

    def test_revoke_user(self):
        sessions = SessionStore()
        sessions.create({"user_id": "u1"})
        sessions.create({"user_id": "u1"})
        sessions.create({"user_id": "u2"})
        assert sessions.revoke_user("u1") == 2
        assert len(sessions) == 1


# =============================================================================
# ROUTES
# =============================================================================


class TestLoginRoutes:

    def test_login_sets_cookie_and_me_works(self, client):
        resp = login(client)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == ADMIN_EMAIL
        assert "password_hash" not in resp.get_json()["user"]

        me = client.get("/api/admin/me")
        assert me.status_code == 200
        assert me.get_json()["user"]["role"] == ROLE_ADMIN

    def test_login_by_username(self, client):
        resp = client.post(
            "/api/admin/login",
            json={"username": "admin", "password": ADMIN_PASSWORD},
            headers=SAME_ORIGIN,
        )
        assert resp.status_code == 200

    def test_cookie_attributes(self):
        app = create_app(base_config(SESSION_COOKIE_SECURE=True))
        resp = login(app.test_client())
        cookie = resp.headers["Set-Cookie"]
        assert cookie.startswith(f"{AUTH_COOKIE_NAME}=")
        assert "HttpOnly" in cookie
        assert "Secure" in cookie
        assert "SameSite=Strict" in cookie
        assert "Path=/" in cookie
        assert "Max-Age=86400" in cookie

    def test_missing_fields(self, client):
        resp = client.post("/api/admin/login", json={"email": ADMIN_EMAIL}, headers=SAME_ORIGIN)
        assert resp.status_code == 400

    def test_bad_password(self, client):
        resp = login(client, password="wrong")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"

    def test_warning_when_lockout_is_near(self, client):
        for n in range(3):
            resp = login(client, password="wrong", **{"X-Forwarded-For": f"10.0.0.{n}"})
        assert "warning" in resp.get_json()

    def test_fifth_failure_locks_account(self, static_app):
        c = static_app.test_client()
        for n in range(4):
            assert login(c, password="wrong", **{"X-Forwarded-For": f"10.0.1.{n}"}).status_code == 401

        locked = login(c, password="wrong", **{"X-Forwarded-For": "10.0.1.9"})
        assert locked.status_code == 429
        assert locked.get_json()["locked"] is True

        # Correct password is refused during the lockout
        again = login(c, **{"X-Forwarded-For": "10.0.1.10"})
        assert again.status_code == 429
        assert int(again.headers["Retry-After"]) > 0

        with static_app.app_context():
            types = [e["event_type"] for e in get_admin_state().security_log.recent()]
        assert "ACCOUNT_LOCKED" in types

    def test_cross_origin_login_rejected(self, client):
        resp = client.post(
            "/api/admin/login",
            json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
            headers={"Origin": "https://evil.example"},
        )
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Invalid request origin"

    def test_referer_is_accepted_as_origin(self, client):
        resp = client.post(
            "/api/admin/login",
            json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
            headers={"Referer": "http://localhost/admin/login"},
        )
        assert resp.status_code == 200

    def test_me_requires_auth(self, client):
        assert client.get("/api/admin/me").status_code == 401

    def test_logout_revokes_session(self, static_app):
        c = static_app.test_client()
        login(c)
        token = c.get_cookie(AUTH_COOKIE_NAME).value

        resp = c.post("/api/admin/logout", headers=SAME_ORIGIN)
        assert resp.status_code == 200
        assert c.get("/api/admin/me").status_code == 401

        # Replaying the old token after logout fails too
        c.set_cookie(AUTH_COOKIE_NAME, token)
        assert c.get("/api/admin/me").status_code == 401

    def test_logout_requires_same_origin(self, client):
        login(client)
        assert client.post("/api/admin/logout").status_code == 403


class TestStartup:

    def test_missing_admin_password_refuses_to_start(self):
        with pytest.raises(ConfigurationError):
            create_app(base_config(ADMIN_DEFAULT_PASSWORD=None))

    def test_empty_admin_password_refuses_to_start(self):
        with pytest.raises(ConfigurationError):
            create_app(base_config(ADMIN_DEFAULT_PASSWORD=""))

    def test_development_signing_key_is_logged_outside_testing(self, caplog):
        with caplog.at_level(logging.WARNING, logger="storefront"):
            create_app(base_config(TESTING=False, SECRET_KEY=DEFAULT_SECRET_KEY, SESSION_SIGNING_SECRET=None))
        assert any("development key" in r.getMessage() for r in caplog.records)

        caplog.clear()
        with caplog.at_level(logging.WARNING, logger="storefront"):
            create_app(base_config(TESTING=False, SECRET_KEY=DEFAULT_SECRET_KEY))
            create_app(base_config(SECRET_KEY=DEFAULT_SECRET_KEY, SESSION_SIGNING_SECRET=None))
        assert not any("development key" in r.getMessage() for r in caplog.records)
