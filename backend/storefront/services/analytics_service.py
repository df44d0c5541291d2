# Overview: Bounded in-process storefront analytics (page views, product views, user actions).

"""
Storefront Analytics

Three bounded streams, newest entries kept:
    page views     10000
    product views   5000
    user actions    5000

summary() reports total / last 24h / last 7d / last 30d counts per stream and
the most viewed products. Counts are per process and reset on restart.
"""
from __future__ import annotations

import threading
import uuid
from collections import Counter, deque
from datetime import datetime, timedelta
from typing import Any, Callable

from storefront.time_utils import to_utc_z, utcnow

PAGE_VIEW_CAPACITY = 10_000
PRODUCT_VIEW_CAPACITY = 5_000
USER_ACTION_CAPACITY = 5_000

WINDOWS = {
    "last_24h": timedelta(hours=24),
    "last_7d": timedelta(days=7),
    "last_30d": timedelta(days=30),
}

TOP_PRODUCTS_LIMIT = 10


class Analytics:
    """Thread-safe ring buffers of storefront activity."""

    def __init__(
        self,
        *,
        page_view_capacity: int = PAGE_VIEW_CAPACITY,
        product_view_capacity: int = PRODUCT_VIEW_CAPACITY,
        user_action_capacity: int = USER_ACTION_CAPACITY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._clock = clock
        self._lock = threading.Lock()
        self._page_views: deque[dict] = deque(maxlen=page_view_capacity)
        self._product_views: deque[dict] = deque(maxlen=product_view_capacity)
        self._user_actions: deque[dict] = deque(maxlen=user_action_capacity)

    def _record(self, stream: deque, **data: Any) -> dict:
        entry = {"id": uuid.uuid4().hex, "timestamp": self._clock(), **data}
        with self._lock:
            stream.append(entry)
        return entry

    def record_page_view(self, path: str, *, ip: str | None = None) -> dict:
        return self._record(self._page_views, path=path, ip=ip)

    def record_product_view(self, product_id: str, *, ip: str | None = None) -> dict:
        return self._record(self._product_views, product_id=str(product_id), ip=ip)

    def record_user_action(self, action: str, *, ip: str | None = None, **context: Any) -> dict:
        return self._record(self._user_actions, action=action, ip=ip, context=context)

    def _counts(self, stream: deque, now: datetime) -> dict:
        counts = {"total": len(stream)}
        for name, span in WINDOWS.items():
            cutoff = now - span
            counts[name] = sum(1 for e in stream if e["timestamp"] > cutoff)
        return counts

    def summary(self) -> dict:
        now = self._clock()
        with self._lock:
            views = Counter(e["product_id"] for e in self._product_views)
            return {
                "page_views": self._counts(self._page_views, now),
                "product_views": self._counts(self._product_views, now),
                "user_actions": self._counts(self._user_actions, now),
                "top_products": [
                    {"product_id": pid, "views": n}
                    for pid, n in views.most_common(TOP_PRODUCTS_LIMIT)
                ],
                "generated_at": to_utc_z(now),
            }

    def clear(self) -> None:
        with self._lock:
            self._page_views.clear()
            self._product_views.clear()
            self._user_actions.clear()
