# Overview: Sliding-window request rate limiting for the admin routes.

"""
Rate Limiting Service

One mechanism, parameterised by policy:
- login: 5 requests / 15 minutes per client
- admin: 50 requests / 5 minutes per client

Each client key maps to its ordered request timestamps. A check prunes
timestamps older than the window, rejects if the remainder is already at the
maximum, otherwise records the request and admits it. Rejected requests are
not recorded, so a client that stops retrying is admitted again one window
after its oldest admitted request.

sweep() drops keys whose timestamps have all aged out; the maintenance
thread calls it on a fixed interval regardless of traffic.
"""
from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    max_requests: int
    window_seconds: int
    message: str = "Too many requests. Please try again later."


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int


LOGIN_MESSAGE = "Too many login attempts. Please try again in 15 minutes."
ADMIN_MESSAGE = "Too many requests. Please slow down."


def login_policy(max_requests: int = 5, window_seconds: int = 15 * 60) -> RateLimitPolicy:
    return RateLimitPolicy("login", max_requests, window_seconds, LOGIN_MESSAGE)


def admin_policy(max_requests: int = 50, window_seconds: int = 5 * 60) -> RateLimitPolicy:
    return RateLimitPolicy("admin", max_requests, window_seconds, ADMIN_MESSAGE)


class RateLimiter:
    """Thread-safe per-client sliding window."""

    def __init__(self, policy: RateLimitPolicy, *, clock: Callable[[], float] = time.monotonic):
        self.policy = policy
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def _prune(self, hits: deque[float], now: float) -> None:
        cutoff = now - self.policy.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def check(self, client_key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(client_key, deque())
            self._prune(hits, now)

            if len(hits) >= self.policy.max_requests:
                # Retry-After is the whole window, not the time until the oldest hit expires.
                return RateLimitDecision(allowed=False, remaining=0, retry_after=self.policy.window_seconds)

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                remaining=self.policy.max_requests - len(hits),
                retry_after=0,
            )

    def seconds_until_reset(self, client_key: str) -> int:
        now = self._clock()
        with self._lock:
            hits = self._hits.get(client_key)
            if not hits:
                return 0
            return max(0, math.ceil(hits[0] + self.policy.window_seconds - now))

    def reset(self, client_key: str | None = None) -> None:
        with self._lock:
            if client_key is None:
                self._hits.clear()
            else:
                self._hits.pop(client_key, None)

    def sweep(self) -> int:
        """Remove keys with no timestamps inside the window. Returns keys removed."""
        now = self._clock()
        with self._lock:
            removed = 0
            for key in list(self._hits):
                hits = self._hits[key]
                self._prune(hits, now)
                if not hits:
                    del self._hits[key]
                    removed += 1
            return removed


def client_key_from_headers(headers, remote_addr: str | None) -> str:
    """
    Client identity for rate limiting, first present of:
    CF-Connecting-IP, X-Real-IP, first X-Forwarded-For hop, socket address.
    """
    for header in ("CF-Connecting-IP", "X-Real-IP"):
        value = (headers.get(header) or "").strip()
        if value:
            return value

    forwarded = headers.get("X-Forwarded-For") or ""
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    return remote_addr or "unknown"
