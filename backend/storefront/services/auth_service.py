# Overview: Admin user accounts; bcrypt credentials, lockout and the role hierarchy.

"""
Admin Authentication Service

Users live in an in-memory UserStore owned by AdminState; there is no user
table. The store is bootstrapped at startup with one admin account whose
password comes from configuration.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required for new users
- Must contain uppercase, lowercase, digit, and special char
- 5 consecutive failed logins lock the account for 15 minutes
- Session tokens managed separately (see session_service.py)
"""
from __future__ import annotations

import functools
import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

import bcrypt

from storefront.time_utils import to_utc_z, utcnow

BCRYPT_ROUNDS = 12

MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=15)

ROLE_VIEWER = "viewer"
ROLE_MODERATOR = "moderator"
ROLE_ADMIN = "admin"

ROLE_HIERARCHY = {
    ROLE_VIEWER: 1,
    ROLE_MODERATOR: 2,
    ROLE_ADMIN: 3,
}

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountLockedError(Exception):
    """Raised when a login targets an account inside its lockout window."""

    def __init__(self, locked_until: datetime, seconds_remaining: int):
        super().__init__("Account temporarily locked due to too many failed login attempts")
        self.locked_until = locked_until
        self.seconds_remaining = seconds_remaining


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, check_strength: bool = True) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    The bootstrap admin password is operator-supplied and hashed with
    check_strength=False; every other caller goes through the strength rule.
    """
    if check_strength:
        validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes verify as False."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


@functools.lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    """Cost-12 hash checked for unknown accounts so both login paths run one full bcrypt round."""
    return hash_password("dummy-password-for-timing", check_strength=False)


def has_role(user_role: str | None, required_role: str) -> bool:
    """True when user_role ranks at or above required_role. Unknown roles rank 0."""
    return ROLE_HIERARCHY.get(user_role or "", 0) >= ROLE_HIERARCHY.get(required_role, 0)


@dataclass
class AdminUser:
    id: str
    username: str
    email: str
    password_hash: str
    role: str = ROLE_VIEWER
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    last_login: datetime | None = None
    failed_login_attempts: int = 0
    locked_until: datetime | None = None

    def to_dict(self) -> dict:
        # Never expose password_hash
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login": to_utc_z(self.last_login),
            "failed_login_attempts": self.failed_login_attempts,
            "locked_until": to_utc_z(self.locked_until),
        }


class UserStore:
    """Thread-safe in-memory admin user registry."""

    def __init__(self, *, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._users: dict[str, AdminUser] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def bootstrap_admin(self, *, email: str, password: str) -> AdminUser:
        """Create the initial admin account; strength rule is not applied here."""
        return self._add(
            username=ROLE_ADMIN,
            email=email.strip().lower(),
            password_hash=hash_password(password, check_strength=False),
            role=ROLE_ADMIN,
        )

    def create_user(self, *, username: str, email: str, password: str, role: str = ROLE_VIEWER) -> AdminUser:
        """
        Create a new admin-layer user.

        Raises:
            ValueError: Unknown role, malformed email, or username/email taken
            PasswordValidationError: If password doesn't meet requirements
        """
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username:
            raise ValueError("username is required")
        if not EMAIL_RE.match(email):
            raise ValueError("A valid email is required")
        if role not in ROLE_HIERARCHY:
            raise ValueError(f"role must be one of: {', '.join(ROLE_HIERARCHY)}")

        password_hash = hash_password(password)
        return self._add(username=username, email=email, password_hash=password_hash, role=role)

    def _add(self, *, username: str, email: str, password_hash: str, role: str) -> AdminUser:
        with self._lock:
            for existing in self._users.values():
                if existing.username == username or existing.email == email:
                    raise ValueError("Username or email already exists")
            user = AdminUser(
                id=str(uuid.uuid4()),
                username=username,
                email=email,
                password_hash=password_hash,
                role=role,
                created_at=self._clock(),
            )
            self._users[user.id] = user
            return user

    def get(self, user_id: str) -> AdminUser | None:
        with self._lock:
            return self._users.get(user_id)

    def find(self, identifier: str) -> AdminUser | None:
        """Look up by email (case-insensitive) or username."""
        ident = (identifier or "").strip()
        with self._lock:
            for user in self._users.values():
                if user.email == ident.lower() or user.username == ident:
                    return user
        return None

    def all_users(self) -> list[AdminUser]:
        with self._lock:
            return sorted(self._users.values(), key=lambda u: u.created_at)

    def authenticate(self, identifier: str, password: str) -> AdminUser | None:
        """
        Verify credentials and maintain the lockout counter.

        Returns the user on success, None on bad credentials.

        Raises:
            AccountLockedError: The account is inside its lockout window
                (checked before the password, so a correct password does not
                unlock early)
        """
        user = self.find(identifier)
        now = self._clock()

        if user is None or not user.is_active:
            verify_password(password, _dummy_password_hash())
            return None

        with self._lock:
            if user.locked_until is not None:
                if now < user.locked_until:
                    remaining = int((user.locked_until - now).total_seconds())
                    raise AccountLockedError(user.locked_until, max(remaining, 1))
                user.locked_until = None
                user.failed_login_attempts = 0

        ok = verify_password(password, user.password_hash)

        with self._lock:
            if not ok:
                user.failed_login_attempts += 1
                if user.failed_login_attempts >= MAX_FAILED_ATTEMPTS:
                    user.locked_until = now + LOCKOUT_DURATION
                return None

            user.failed_login_attempts = 0
            user.locked_until = None
            user.last_login = now
            return user
