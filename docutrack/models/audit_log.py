"""Audit log entry, append-only."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AuditLog:
    """Immutable security audit record.

    Entries are only ever appended to the audit trail; nothing updates or
    removes them.
    """

    id: int
    timestamp: datetime
    event_type: str  # e.g. "LOGIN_ATTEMPT", "SESSION", "REQUEST"
    action: str  # e.g. "INVALID_PASSWORD", "LOGOUT", "STATUS_UPDATED"
    severity: str
    actor_email: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
