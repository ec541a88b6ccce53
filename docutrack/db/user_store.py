"""Whitelist of identities allowed to hold a role."""

import threading
from typing import Dict, Iterable, List, Optional

from docutrack.core.exceptions import ResourceConflictError, ResourceNotFoundError
from docutrack.models.role import Role
from docutrack.models.user import User


class WhitelistStore:
    """Process-wide user directory, seeded at startup. Users are never deleted."""

    def __init__(self, users: Optional[Iterable[User]] = None):
        self._users: Dict[str, User] = {}
        self._lock = threading.RLock()
        for user in users or ():
            self._users[user.email] = user

    def find(self, email: Optional[str]) -> Optional[User]:
        if not email or not isinstance(email, str):
            return None
        with self._lock:
            return self._users.get(email.strip().lower())

    def add(self, user: User) -> User:
        """Raises ResourceConflictError if the email is already listed."""
        with self._lock:
            if user.email in self._users:
                raise ResourceConflictError(f"User {user.email} is already whitelisted")
            self._users[user.email] = user
            return user

    def set_role(self, email: str, role: Role) -> User:
        with self._lock:
            user = self._users.get((email or "").strip().lower())
            if user is None:
                raise ResourceNotFoundError(f"User {email} not found")
            user.role = role
            return user

    def all(self) -> List[User]:
        with self._lock:
            return sorted(self._users.values(), key=lambda u: u.email)

    def __contains__(self, email) -> bool:
        return self.find(email) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
