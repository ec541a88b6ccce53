"""Server-side session record."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Optional

from docutrack.models.role import Role

SESSION_ID_PREFIX = "sess_"

DESTROYED_BY_LOGOUT = "user_logout"
DESTROYED_BY_TIMEOUT = "timeout"


@dataclass
class Session:
    """An issued session.

    ``permissions`` is a frozen snapshot taken at creation; later edits to
    the role tables never reach a live session. Once ``is_active`` is False
    the session is terminal.
    """

    session_id: str
    email: str
    role: Role
    permissions: FrozenSet[str]
    role_level: int
    domain: str
    created_at: datetime
    last_accessed_at: datetime
    is_active: bool = True
    destroyed_at: Optional[datetime] = None
    destroyed_by: Optional[str] = None
    login_method: str = "email_password"
    metadata: dict = field(default_factory=dict)

    def expires_at(self, timeout: timedelta) -> datetime:
        return self.created_at + timeout
