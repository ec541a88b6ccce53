"""In-memory session table keyed by opaque session token.

Sessions have a hard lifetime measured from ``created_at``; activity does not
extend it. Expired or logged-out sessions stay in the table as terminal
records until the process ends, so a destroyed id can be told apart from one
that never existed.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from docutrack.core.clock import Clock, utc_now
from docutrack.core.exceptions import (
    InvalidUserError,
    SessionAlreadyDestroyedError,
    SessionNotFoundError,
)
from docutrack.core.security import generate_session_id
from docutrack.models.session import DESTROYED_BY_TIMEOUT, SESSION_ID_PREFIX, Session
from docutrack.models.user import User, email_domain
from docutrack.services.audit_service import AuditService
from docutrack.services.role_registry import RoleRegistry

logger = logging.getLogger("docutrack.sessions")

DEFAULT_SESSION_TIMEOUT = timedelta(hours=24)


class SessionStore:
    """Create, read, expire and destroy sessions. Mutations hold ``_lock``."""

    def __init__(
        self,
        registry: RoleRegistry,
        audit: Optional[AuditService] = None,
        timeout: timedelta = DEFAULT_SESSION_TIMEOUT,
        clock: Clock = utc_now,
    ):
        self._registry = registry
        self._audit = audit
        self.timeout = timeout
        self._clock = clock
        self._data: Dict[str, Session] = {}
        self._lock = threading.RLock()

    @staticmethod
    def is_well_formed(token) -> bool:
        """Cheap shape check done before any lookup."""
        return (
            isinstance(token, str)
            and token.startswith(SESSION_ID_PREFIX)
            and len(token) > len(SESSION_ID_PREFIX)
        )

    def create(self, user: User, now: Optional[datetime] = None, login_method: str = "email_password") -> Session:
        """Issue a session for ``user``.

        Raises:
            InvalidUserError: missing email/role, unknown role, or a role that
                is not legal for the email's domain.
        """
        if user is None or not getattr(user, "email", None) or not getattr(user, "role", None):
            raise InvalidUserError("User email and role are required")

        role = self._registry.parse_role(user.role)
        if role is None:
            raise InvalidUserError(f"Unknown role '{user.role}'")

        if not self._registry.is_role_legal_for_email(user.email, role):
            if self._audit is not None:
                self._audit.log(
                    "SESSION_CREATION",
                    "INVALID_ROLE_FOR_DOMAIN",
                    actor_email=user.email,
                    details={"role": role.value, "domain": email_domain(user.email)},
                )
            raise InvalidUserError(f"Role {role.value} is not allowed for {email_domain(user.email)}")

        now = now or self._clock()
        session = Session(
            session_id=generate_session_id(),
            email=user.email,
            role=role,
            permissions=frozenset(self._registry.permissions_of(role)),
            role_level=self._registry.level_of(role),
            domain=email_domain(user.email),
            created_at=now,
            last_accessed_at=now,
            login_method=login_method,
        )
        with self._lock:
            self._data[session.session_id] = session

        if self._audit is not None:
            self._audit.log(
                "SESSION",
                "CREATE",
                actor_email=session.email,
                details={"role": role.value, "loginMethod": login_method},
            )
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._data.get(session_id)

    def touch(self, session_id: str, now: Optional[datetime] = None) -> None:
        with self._lock:
            session = self._data.get(session_id)
            if session is not None and session.is_active:
                session.last_accessed_at = now or self._clock()

    def expire_if_stale(self, session: Session, now: datetime, timeout: Optional[timedelta] = None) -> bool:
        """Pure staleness check; the caller decides whether to destroy."""
        timeout = timeout or self.timeout
        return (now - session.created_at) > timeout

    def destroy(self, session_id: str, reason: str, now: Optional[datetime] = None) -> Session:
        """Mark a session terminal.

        Raises:
            SessionNotFoundError: the id was never issued.
            SessionAlreadyDestroyedError: the session is already inactive.
        """
        with self._lock:
            session = self._data.get(session_id)
            if session is None:
                raise SessionNotFoundError("Invalid or expired session")
            if not session.is_active:
                raise SessionAlreadyDestroyedError("Session already destroyed")
            session.is_active = False
            session.destroyed_at = now or self._clock()
            session.destroyed_by = reason

        if self._audit is not None:
            action = "EXPIRE" if reason == DESTROYED_BY_TIMEOUT else "DESTROY"
            self._audit.log("SESSION", action, actor_email=session.email, details={"reason": reason})
        return session

    def sweep_expired(self, now: Optional[datetime] = None, timeout: Optional[timedelta] = None) -> int:
        """Destroy every active session past its lifetime; returns how many."""
        now = now or self._clock()
        with self._lock:
            stale = [
                s.session_id for s in self._data.values()
                if s.is_active and self.expire_if_stale(s, now, timeout)
            ]
            for session_id in stale:
                self.destroy(session_id, DESTROYED_BY_TIMEOUT, now)
        if stale:
            logger.info("Expired %d stale session(s)", len(stale))
        return len(stale)

    def active_sessions(self) -> List[Session]:
        with self._lock:
            return [s for s in self._data.values() if s.is_active]

    def sessions_for(self, email: str) -> List[Session]:
        email = (email or "").lower()
        with self._lock:
            return [s for s in self._data.values() if s.email == email]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
