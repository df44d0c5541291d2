# Overview: Flask API routes for admin login, logout and the current-user lookup.

"""
Admin Authentication API routes

SECURITY FEATURES:
- Login rate-limited per client (5 requests / 15 minutes)
- Account lockout after 5 consecutive failed attempts
- Session token issued only as an HttpOnly, Secure, SameSite=Strict cookie
- Logout revokes the server-side session, not just the cookie
"""
from flask import Blueprint, current_app, g, request

from ..decorators import csrf_protect, log_security_event, rate_limited, require_auth
from ..services import session_service
from ..services.auth_service import AccountLockedError, MAX_FAILED_ATTEMPTS
from ..services.security_log_service import (
    ACCOUNT_LOCKED,
    INPUT_VALIDATION_FAILED,
    LOGIN_FAILURE,
    LOGIN_SUCCESS,
    LOGOUT,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
)
from ..state import get_admin_state

auth_bp = Blueprint("auth", __name__, url_prefix="/api/admin")


def _cookie_secure() -> bool:
    return bool(current_app.config.get("SESSION_COOKIE_SECURE", True))


@auth_bp.post("/login")
@rate_limited("login")
@csrf_protect
def login_route():
    """
    Authenticate an admin user and start a session.

    Body: {"email": ..., "password": ...} ("username" is accepted for email)

    On success sets the auth-token cookie and returns the user.
    """
    data = request.get_json(silent=True) or {}
    identifier = str(data.get("email") or data.get("username") or "").strip()
    password = data.get("password")

    if not identifier or not isinstance(password, str) or not password:
        log_security_event(INPUT_VALIDATION_FAILED, severity=SEVERITY_LOW, field="credentials")
        return {"error": "email and password required"}, 400

    state = get_admin_state()

    try:
        user = state.users.authenticate(identifier, password)
    except AccountLockedError as e:
        log_security_event(LOGIN_FAILURE, severity=SEVERITY_HIGH, identifier=identifier, reason="account_locked")
        return {
            "error": str(e),
            "locked": True,
            "retry_after_seconds": e.seconds_remaining,
        }, 429, {"Retry-After": str(e.seconds_remaining)}

    if user is None:
        log_security_event(LOGIN_FAILURE, severity=SEVERITY_MEDIUM, identifier=identifier, reason="invalid_credentials")

        target = state.users.find(identifier)
        if target is not None and target.locked_until is not None:
            log_security_event(ACCOUNT_LOCKED, severity=SEVERITY_HIGH, identifier=identifier)
            return {
                "error": "Account locked due to too many failed login attempts",
                "locked": True,
                "retry_after_minutes": 15,
            }, 429

        body = {"error": "Invalid credentials"}
        if target is not None:
            remaining = MAX_FAILED_ATTEMPTS - target.failed_login_attempts
            if remaining <= 2:
                body["warning"] = f"{remaining} attempts remaining before account lockout"
        return body, 401

    session = state.sessions.create({"user_id": user.id, "email": user.email, "role": user.role})
    token = session_service.issue_token(
        user_id=user.id,
        email=user.email,
        role=user.role,
        session_id=session.id,
        secret=state.signing_secret,
    )
    log_security_event(LOGIN_SUCCESS, severity=SEVERITY_LOW, identifier=user.email)

    response = current_app.make_response(({"user": user.to_dict(), "message": "Login successful"}, 200))
    return session_service.set_auth_cookie(response, token, secure=_cookie_secure())


@auth_bp.post("/logout")
@csrf_protect
@require_auth
def logout_route():
    state = get_admin_state()
    state.sessions.revoke(g.current_user.session_id)
    log_security_event(LOGOUT, severity=SEVERITY_LOW)

    response = current_app.make_response(({"message": "Logged out"}, 200))
    return session_service.clear_auth_cookie(response, secure=_cookie_secure())


@auth_bp.get("/me")
@require_auth
def me_route():
    user = get_admin_state().users.get(g.current_user.user_id)
    if user is None or not user.is_active:
        return {"error": "Authentication required"}, 401
    return {"user": user.to_dict()}
