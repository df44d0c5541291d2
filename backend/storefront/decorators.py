# Overview: Request guards for the admin API (rate limit, CSRF origin check, auth, role).

"""
Admin routes stack these in a fixed order, outermost first:

    @rate_limited("admin")
    @csrf_protect
    @require_auth
    @require_role("moderator")

Each guard short-circuits with a JSON error and records a security event.
"""
from functools import wraps

from flask import current_app, g, jsonify, request

from .services import session_service
from .services.auth_service import has_role
from .services.rate_limit_service import client_key_from_headers
from .services.security_log_service import (
    CSRF_ATTACK_ATTEMPT,
    INSUFFICIENT_PERMISSIONS,
    RATE_LIMIT_EXCEEDED,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    UNAUTHORIZED_ACCESS_ATTEMPT,
)
from .state import get_admin_state

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def client_ip() -> str:
    return client_key_from_headers(request.headers, request.remote_addr)


def log_security_event(event_type: str, *, severity: str = SEVERITY_MEDIUM, **context):
    """Record a security event enriched with the current request's client details."""
    user = getattr(g, "current_user", None)
    return get_admin_state().security_log.log_event(
        event_type,
        severity=severity,
        ip=client_ip(),
        user_agent=request.headers.get("User-Agent"),
        path=request.path,
        method=request.method,
        user_id=user.user_id if user else None,
        **context,
    )


def rate_limited(policy_name: str):
    """Apply the named rate-limit policy ("login" or "admin") per client IP."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            state = get_admin_state()
            limiter = state.login_limiter if policy_name == "login" else state.admin_limiter
            key = client_ip()
            decision = limiter.check(key)

            if not decision.allowed:
                log_security_event(
                    RATE_LIMIT_EXCEEDED,
                    severity=SEVERITY_MEDIUM,
                    policy=limiter.policy.name,
                    limit=limiter.policy.max_requests,
                    window_seconds=limiter.policy.window_seconds,
                )
                response = jsonify({
                    "error": limiter.policy.message,
                    "retry_after": decision.retry_after,
                })
                response.status_code = 429
                response.headers["Retry-After"] = str(decision.retry_after)
                return response

            g.rate_limit_remaining = decision.remaining
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def _same_origin() -> bool:
    host = request.host
    if not host:
        return False
    origin = request.headers.get("Origin") or ""
    referer = request.headers.get("Referer") or ""
    return (bool(origin) and host in origin) or (bool(referer) and host in referer)


def csrf_protect(f):
    """
    For mutating methods, Origin or Referer must contain the request Host.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if request.method not in SAFE_METHODS and not _same_origin():
            log_security_event(
                CSRF_ATTACK_ATTEMPT,
                severity=SEVERITY_HIGH,
                origin=request.headers.get("Origin"),
                referer=request.headers.get("Referer"),
                host=request.host,
            )
            current_app.logger.warning("Rejected cross-origin %s %s", request.method, request.path)
            return jsonify({"error": "Invalid request origin"}), 403
        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require a valid session token from the auth cookie.

    Sets g.current_user to the SessionContext.

    Returns 401 if:
    - No auth cookie
    - Invalid, tampered or expired token
    - Session revoked (logout) or purged for inactivity
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        state = get_admin_state()
        token = request.cookies.get(session_service.AUTH_COOKIE_NAME)
        context = session_service.validate_token(
            token,
            secret=state.signing_secret,
            sessions=state.sessions,
        )

        if context is None:
            log_security_event(
                UNAUTHORIZED_ACCESS_ATTEMPT,
                severity=SEVERITY_MEDIUM,
                had_token=bool(token),
            )
            return jsonify({"error": "Authentication required"}), 401

        g.current_user = context
        return f(*args, **kwargs)

    return decorated_function


def require_role(required_role: str):
    """Require the authenticated user's role to rank at or above required_role."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if not has_role(user.role, required_role):
                log_security_event(
                    INSUFFICIENT_PERMISSIONS,
                    severity=SEVERITY_HIGH,
                    user_role=user.role,
                    required_role=required_role,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_role": required_role,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
