# Overview: Per-app container for the admin layer's in-process state.

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from .config import ConfigurationError
from .services.analytics_service import Analytics
from .services.auth_service import UserStore
from .services.maintenance_service import MaintenanceSweeper, run_sweep
from .services.rate_limit_service import RateLimiter, admin_policy, login_policy
from .services.security_log_service import SecurityLog
from .services.session_service import SessionStore

EXTENSION_KEY = "storefront.admin"


@dataclass
class AdminState:
    """
    Everything the admin layer mutates at runtime. Each structure guards
    itself with its own lock; AdminState only groups them.
    """
    users: UserStore
    sessions: SessionStore
    login_limiter: RateLimiter
    admin_limiter: RateLimiter
    security_log: SecurityLog
    analytics: Analytics
    sweeper: MaintenanceSweeper
    signing_secret: str

    @classmethod
    def from_config(cls, app: Flask) -> "AdminState":
        cfg = app.config
        password = cfg.get("ADMIN_DEFAULT_PASSWORD")
        if not password:
            raise ConfigurationError(
                "ADMIN_DEFAULT_PASSWORD must be set; refusing to start without an admin credential"
            )

        users = UserStore()
        users.bootstrap_admin(email=cfg["ADMIN_DEFAULT_EMAIL"], password=password)

        sessions = SessionStore()
        login_limiter = RateLimiter(login_policy(*cfg["LOGIN_RATE_LIMIT"]))
        admin_limiter = RateLimiter(admin_policy(*cfg["ADMIN_RATE_LIMIT"]))
        security_log = SecurityLog(capacity=cfg["SECURITY_LOG_CAPACITY"], logger=app.logger)

        sweeper = MaintenanceSweeper(
            lambda: run_sweep(rate_limiters=(login_limiter, admin_limiter), sessions=sessions),
            cfg["MAINTENANCE_SWEEP_SECONDS"],
            log=app.logger,
        )

        return cls(
            users=users,
            sessions=sessions,
            login_limiter=login_limiter,
            admin_limiter=admin_limiter,
            security_log=security_log,
            analytics=Analytics(),
            sweeper=sweeper,
            signing_secret=cfg.get("SESSION_SIGNING_SECRET") or cfg["SECRET_KEY"],
        )

    def sweep(self) -> dict:
        return self.sweeper.run_once()

    def counters(self) -> dict:
        return {
            "users": len(self.users),
            "sessions": len(self.sessions),
            "rate_limit_keys": {
                self.login_limiter.policy.name: len(self.login_limiter),
                self.admin_limiter.policy.name: len(self.admin_limiter),
            },
            "security_events": len(self.security_log),
            "sweeper_running": self.sweeper.running,
        }


def init_admin_state(app: Flask) -> AdminState:
    state = AdminState.from_config(app)
    app.extensions[EXTENSION_KEY] = state
    if not app.testing:
        state.sweeper.start()
    return state


def get_admin_state() -> AdminState:
    return current_app.extensions[EXTENSION_KEY]
