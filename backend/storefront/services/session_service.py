# Overview: Admin sessions; in-memory session store plus the signed HS256 session token.

"""
Session Token Management Service

SECURITY FEATURES:
- Token is an HS256 JWT (PyJWT) carrying user_id, email, role, session_id
- 24-hour fixed expiry inside the token (exp)
- The session_id must still exist in the SessionStore; logout and the idle
  purge revoke a token even though its signature stays valid
- Sessions idle for 24 hours are purged by the maintenance sweep
- Token travels in one cookie: HttpOnly, Secure, SameSite=Strict
"""
from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from storefront.time_utils import to_utc_z, utcnow

JWT_ALGORITHM = "HS256"

SESSION_TOKEN_LIFETIME = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=24)

AUTH_COOKIE_NAME = "auth-token"
AUTH_COOKIE_MAX_AGE = int(SESSION_TOKEN_LIFETIME.total_seconds())


@dataclass
class Session:
    id: str
    payload: dict
    created_at: datetime
    last_activity: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.payload.get("user_id"),
            "created_at": to_utc_z(self.created_at),
            "last_activity": to_utc_z(self.last_activity),
        }


@dataclass
class SessionContext:
    """What require_auth puts on flask.g for the current request."""
    user_id: str
    email: str
    role: str
    session_id: str
    claims: dict = field(default_factory=dict)


def generate_session_id() -> str:
    return secrets.token_hex(32)


class SessionStore:
    """Thread-safe in-memory session registry."""

    def __init__(self, *, clock: Callable[[], datetime] = utcnow, idle_timeout: timedelta = SESSION_IDLE_TIMEOUT):
        self._clock = clock
        self._idle_timeout = idle_timeout
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, payload: dict) -> Session:
        now = self._clock()
        session = Session(id=generate_session_id(), payload=dict(payload), created_at=now, last_activity=now)
        with self._lock:
            self._sessions[session.id] = session
        return session

    def touch(self, session_id: str) -> Session | None:
        """Return the live session and refresh its activity time; None if unknown or idle-expired."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if now - session.last_activity > self._idle_timeout:
                del self._sessions[session_id]
                return None
            session.last_activity = now
            return session

    def revoke(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def revoke_user(self, user_id: str) -> int:
        with self._lock:
            doomed = [sid for sid, s in self._sessions.items() if s.payload.get("user_id") == user_id]
            for sid in doomed:
                del self._sessions[sid]
            return len(doomed)

    def purge_expired(self) -> int:
        """Drop sessions idle longer than the timeout. Returns how many were removed."""
        cutoff = self._clock() - self._idle_timeout
        with self._lock:
            doomed = [sid for sid, s in self._sessions.items() if s.last_activity < cutoff]
            for sid in doomed:
                del self._sessions[sid]
            return len(doomed)


def issue_token(
    *,
    user_id: str,
    email: str,
    role: str,
    session_id: str,
    secret: str,
    now: datetime | None = None,
    lifetime: timedelta = SESSION_TOKEN_LIFETIME,
) -> str:
    """
    Create a signed session token.

    Args:
        now: Issue time (naive UTC); defaults to the wall clock
        lifetime: Fixed expiry from issue time

    Returns:
        Encoded JWT token string
    """
    issued = (now or utcnow()).replace(tzinfo=timezone.utc)
    payload = {
        "user_id": user_id,
        "email": email,
        "role": role,
        "session_id": session_id,
        "iat": issued,
        "exp": issued + lifetime,
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, *, secret: str) -> dict | None:
    """
    Verify signature and expiry.

    Returns:
        Claims dict, or None for expired, tampered or malformed tokens
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    if not all(claims.get(k) for k in ("user_id", "role", "session_id")):
        return None
    return claims


def validate_token(token: str | None, *, secret: str, sessions: SessionStore) -> SessionContext | None:
    """
    Validate a token against its signature AND the live session store.

    Returns None if:
    - No token, bad signature, or expired
    - Its session was revoked (logout) or purged for inactivity
    """
    if not token:
        return None
    claims = decode_token(token, secret=secret)
    if claims is None:
        return None
    if sessions.touch(claims["session_id"]) is None:
        return None
    return SessionContext(
        user_id=claims["user_id"],
        email=claims.get("email", ""),
        role=claims["role"],
        session_id=claims["session_id"],
        claims=claims,
    )


def set_auth_cookie(response, token: str, *, secure: bool = True):
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=AUTH_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=secure,
        samesite="Strict",
    )
    return response


def clear_auth_cookie(response, *, secure: bool = True):
    response.delete_cookie(
        AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=secure,
        samesite="Strict",
    )
    return response
