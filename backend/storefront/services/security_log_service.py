# Overview: Bounded in-process security event log with threshold alerting.

"""
Security Event Log

- Append-only, bounded to the newest `capacity` events (default 1000)
- Context values are sanitized before storage: sensitive keys redacted,
  strings longer than 500 characters truncated
- After each append, events in the last 5 minutes are counted by class:
    failure-class    >= 5  -> MULTIPLE_FAILURES alert
    suspicious-class >= 3  -> SUSPICIOUS_PATTERN alert
- Alerts go to a bounded alert list and to the application logger at
  WARNING. Nothing here ever blocks or fails a request.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import threading
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from storefront.time_utils import to_utc_z, utcnow

DEFAULT_CAPACITY = 1000
ALERT_CAPACITY = 100
MAX_STRING_LENGTH = 500
TRUNCATION_MARKER = "...[TRUNCATED]"
REDACTED = "[REDACTED]"

ALERT_WINDOW = timedelta(minutes=5)
FAILURE_THRESHOLD = 5
SUSPICIOUS_THRESHOLD = 3

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"
SEVERITY_CRITICAL = "critical"

# Event types
LOGIN_SUCCESS = "LOGIN_SUCCESS"
LOGIN_FAILURE = "LOGIN_FAILURE"
ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
LOGOUT = "LOGOUT"
UNAUTHORIZED_ACCESS_ATTEMPT = "UNAUTHORIZED_ACCESS_ATTEMPT"
INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
CSRF_ATTACK_ATTEMPT = "CSRF_ATTACK_ATTEMPT"
RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
INPUT_VALIDATION_FAILED = "INPUT_VALIDATION_FAILED"
XSS_ATTEMPT = "XSS_ATTEMPT"
SQL_INJECTION_ATTEMPT = "SQL_INJECTION_ATTEMPT"
USER_CREATED = "USER_CREATED"

FAILURE_EVENTS = frozenset({
    LOGIN_FAILURE,
    INPUT_VALIDATION_FAILED,
    RATE_LIMIT_EXCEEDED,
})

SUSPICIOUS_EVENTS = frozenset({
    XSS_ATTEMPT,
    SQL_INJECTION_ATTEMPT,
    CSRF_ATTACK_ATTEMPT,
})

SENSITIVE_KEYS = ("password", "token", "apikey", "api_key", "secret", "creditcard", "credit_card", "authorization", "cookie")

ALERT_MULTIPLE_FAILURES = "MULTIPLE_FAILURES"
ALERT_SUSPICIOUS_PATTERN = "SUSPICIOUS_PATTERN"

CSV_COLUMNS = ["id", "timestamp", "event_type", "severity", "ip", "user_agent", "path", "method", "user_id", "context"]

_LEVEL_BY_SEVERITY = {
    SEVERITY_LOW: logging.INFO,
    SEVERITY_MEDIUM: logging.INFO,
    SEVERITY_HIGH: logging.WARNING,
    SEVERITY_CRITICAL: logging.WARNING,
}


def _is_sensitive(key: str) -> bool:
    k = key.lower().replace("-", "_")
    return any(s in k for s in SENSITIVE_KEYS)


def sanitize(value: Any, key: str | None = None) -> Any:
    """Recursively redact sensitive keys and truncate long strings."""
    if key is not None and _is_sensitive(key):
        return REDACTED
    if isinstance(value, dict):
        return {k: sanitize(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize(v) for v in value]
    if isinstance(value, str) and len(value) > MAX_STRING_LENGTH:
        return value[:MAX_STRING_LENGTH] + TRUNCATION_MARKER
    return value


@dataclass
class SecurityEvent:
    id: str
    timestamp: datetime
    event_type: str
    severity: str
    ip: str | None = None
    user_agent: str | None = None
    path: str | None = None
    method: str | None = None
    user_id: str | None = None
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "event_type": self.event_type,
            "severity": self.severity,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "path": self.path,
            "method": self.method,
            "user_id": self.user_id,
            "context": self.context,
        }


@dataclass
class SecurityAlert:
    id: str
    timestamp: datetime
    alert_type: str
    count: int
    window_seconds: int
    trigger_event_id: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "alert_type": self.alert_type,
            "count": self.count,
            "window_seconds": self.window_seconds,
            "trigger_event_id": self.trigger_event_id,
        }


class SecurityLog:
    """Thread-safe bounded security event log."""

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_CAPACITY,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.capacity = capacity
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._lock = threading.Lock()
        self._events: deque[SecurityEvent] = deque(maxlen=capacity)
        self._alerts: deque[SecurityAlert] = deque(maxlen=ALERT_CAPACITY)
        self._total_logged = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def log_event(
        self,
        event_type: str,
        *,
        severity: str = SEVERITY_MEDIUM,
        ip: str | None = None,
        user_agent: str | None = None,
        path: str | None = None,
        method: str | None = None,
        user_id: str | None = None,
        **context: Any,
    ) -> SecurityEvent:
        """Append one event; returns the stored (sanitized) event."""
        event = SecurityEvent(
            id=uuid.uuid4().hex,
            timestamp=self._clock(),
            event_type=event_type,
            severity=severity,
            ip=ip,
            user_agent=sanitize(user_agent),
            path=path,
            method=method,
            user_id=user_id,
            context=sanitize(context),
        )

        with self._lock:
            self._events.append(event)
            self._total_logged += 1
            alerts = self._check_for_alerts(event)

        self._logger.log(
            _LEVEL_BY_SEVERITY.get(severity, logging.INFO),
            "Security event %s severity=%s ip=%s path=%s user=%s",
            event_type, severity, ip, path, user_id,
        )
        for alert in alerts:
            self._logger.warning(
                "Security alert %s: %d events in %ds (trigger %s)",
                alert.alert_type, alert.count, alert.window_seconds, alert.trigger_event_id,
            )
        return event

    def _check_for_alerts(self, event: SecurityEvent) -> list[SecurityAlert]:
        # Caller holds self._lock
        is_failure = event.event_type in FAILURE_EVENTS
        is_suspicious = event.event_type in SUSPICIOUS_EVENTS
        if not (is_failure or is_suspicious):
            return []

        cutoff = event.timestamp - ALERT_WINDOW
        recent = [e for e in self._events if e.timestamp > cutoff]
        raised = []

        if is_failure:
            count = sum(1 for e in recent if e.event_type in FAILURE_EVENTS)
            if count >= FAILURE_THRESHOLD:
                raised.append(self._raise_alert(ALERT_MULTIPLE_FAILURES, count, event))

        if is_suspicious:
            count = sum(1 for e in recent if e.event_type in SUSPICIOUS_EVENTS)
            if count >= SUSPICIOUS_THRESHOLD:
                raised.append(self._raise_alert(ALERT_SUSPICIOUS_PATTERN, count, event))

        return raised

    def _raise_alert(self, alert_type: str, count: int, trigger: SecurityEvent) -> SecurityAlert:
        alert = SecurityAlert(
            id=uuid.uuid4().hex,
            timestamp=trigger.timestamp,
            alert_type=alert_type,
            count=count,
            window_seconds=int(ALERT_WINDOW.total_seconds()),
            trigger_event_id=trigger.id,
        )
        self._alerts.append(alert)
        return alert

    def recent(self, limit: int = 100, *, event_type: str | None = None) -> list[dict]:
        """Newest first."""
        with self._lock:
            events = list(self._events)
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return [e.to_dict() for e in reversed(events)][:max(limit, 0)]

    def alerts(self) -> list[dict]:
        with self._lock:
            return [a.to_dict() for a in reversed(self._alerts)]

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            events = list(self._events)
            alert_count = len(self._alerts)
            total_logged = self._total_logged

        last_hour = now - timedelta(hours=1)
        return {
            "total_events": len(events),
            "total_logged": total_logged,
            "capacity": self.capacity,
            "by_type": dict(Counter(e.event_type for e in events)),
            "by_severity": dict(Counter(e.severity for e in events)),
            "last_hour": sum(1 for e in events if e.timestamp > last_hour),
            "alert_count": alert_count,
            "oldest": to_utc_z(events[0].timestamp) if events else None,
            "newest": to_utc_z(events[-1].timestamp) if events else None,
        }

    def export(self, fmt: str = "json") -> str:
        """Serialize every stored event, oldest first, as "json" or "csv"."""
        with self._lock:
            rows = [e.to_dict() for e in self._events]

        if fmt == "json":
            return json.dumps(rows, ensure_ascii=False, indent=2)
        if fmt == "csv":
            buf = io.StringIO()
            writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS)
            writer.writeheader()
            for row in rows:
                row["context"] = json.dumps(row["context"], ensure_ascii=False, sort_keys=True)
                writer.writerow(row)
            return buf.getvalue()
        raise ValueError(f"Unsupported export format: {fmt}")

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._alerts.clear()
