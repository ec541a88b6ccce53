"""Audit service: append-only security audit trail."""

import logging
import threading
from itertools import count
from typing import Any, Dict, List, Optional

from docutrack.core.clock import Clock, utc_now
from docutrack.models.audit_log import AuditLog

logger = logging.getLogger("docutrack.audit")

HIGH_SEVERITY_ACTIONS = frozenset({"ACCOUNT_LOCKED", "INVALID_PASSWORD", "UNAUTHORIZED_USER"})
MEDIUM_SEVERITY_ACTIONS = frozenset({
    "INVALID_DOMAIN",
    "SESSION_CREATION_FAILED",
    "INVALID_ROLE_FOR_DOMAIN",
    "PERMISSION_DENIED",
})

_LOG_LEVELS = {
    "HIGH": logging.WARNING,
    "MEDIUM": logging.WARNING,
    "INFO": logging.INFO,
    "LOW": logging.DEBUG,
}


def event_severity(event_type: str, action: str) -> str:
    if action in HIGH_SEVERITY_ACTIONS:
        return "HIGH"
    if action in MEDIUM_SEVERITY_ACTIONS:
        return "MEDIUM"
    if event_type == "LOGIN_SUCCESS":
        return "INFO"
    return "LOW"


class AuditService:
    """Records immutable audit log entries for security and request events."""

    def __init__(self, clock: Clock = utc_now, max_entries: int = 10_000):
        self._clock = clock
        self._entries: List[AuditLog] = []
        self._ids = count(1)
        self._lock = threading.RLock()
        self._max_entries = max_entries

    def log(
        self,
        event_type: str,
        action: str,
        actor_email: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ) -> AuditLog:
        """Append a single audit record and mirror it to the log.

        Args:
            event_type: e.g. "LOGIN_ATTEMPT", "LOGIN_SUCCESS", "SESSION", "REQUEST"
            action: e.g. "INVALID_PASSWORD", "CREATE", "STATUS_UPDATED"
        """
        severity = severity or event_severity(event_type, action)
        with self._lock:
            entry = AuditLog(
                id=next(self._ids),
                timestamp=self._clock(),
                event_type=event_type,
                action=action,
                severity=severity,
                actor_email=actor_email.lower() if isinstance(actor_email, str) else None,
                details=dict(details or {}),
            )
            self._entries.append(entry)
            if len(self._entries) > self._max_entries:
                # Bounded memory: the oldest records roll off
                del self._entries[: len(self._entries) - self._max_entries]

        logger.log(
            _LOG_LEVELS.get(severity, logging.INFO),
            "[SECURITY_AUDIT] %s:%s actor=%s %s",
            event_type,
            action,
            actor_email or "-",
            entry.details,
        )
        return entry

    def recent(self, limit: int = 100) -> List[AuditLog]:
        """Most recent entries, oldest first."""
        with self._lock:
            if limit <= 0:
                return []
            return list(self._entries[-limit:])

    def query_logs(
        self,
        event_type: Optional[str] = None,
        action: Optional[str] = None,
        actor_email: Optional[str] = None,
        severity: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Query audit logs with filters and pagination, newest first."""
        with self._lock:
            logs = list(reversed(self._entries))

        if event_type:
            logs = [e for e in logs if e.event_type == event_type]
        if action:
            needle = action.lower()
            logs = [e for e in logs if needle in e.action.lower()]
        if actor_email:
            logs = [e for e in logs if e.actor_email == actor_email.lower()]
        if severity:
            logs = [e for e in logs if e.severity == severity.upper()]

        total = len(logs)
        start = (page - 1) * page_size
        return {
            "logs": logs[start:start + page_size],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
