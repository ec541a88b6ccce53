"""Password hashing, session tokens and RBAC guard dependencies."""

import asyncio
import random
import secrets
from typing import Awaitable, Callable, Optional

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from docutrack.models.session import SESSION_ID_PREFIX

# Bearer scheme; the cookie and query fallbacks are handled in get_session_token
security_scheme = HTTPBearer(auto_error=False)

DelayPolicy = Callable[[], Awaitable[None]]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash. OAuth-only users never match."""
    if not hashed_password:
        return False
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    try:
        return bcrypt.checkpw(pwd_bytes, hashed_bytes)
    except ValueError:
        # Malformed stored hash
        return False


def generate_session_id() -> str:
    """Opaque, unguessable session token with a recognizable prefix."""
    return f"{SESSION_ID_PREFIX}{secrets.token_urlsafe(32)}"


def generate_csrf_state() -> str:
    return f"csrf_{secrets.token_hex(16)}"


def random_delay(min_ms: int = 50, max_ms: int = 150) -> DelayPolicy:
    """Build the artificial delay awaited before answering a password check."""

    async def _delay() -> None:
        await asyncio.sleep(random.uniform(min_ms, max_ms) / 1000.0)

    return _delay


async def no_delay() -> None:
    return None


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Optional[str]:
    """Pull a session token from the bearer header, cookie or ?token= query."""
    if credentials is not None:
        return credentials.credentials
    container = request.app.state.container
    cookie_token = request.cookies.get(container.settings.SESSION_COOKIE_NAME)
    if cookie_token:
        return cookie_token
    return request.query_params.get("token")


async def get_current_session(
    request: Request,
    token: Optional[str] = Depends(get_session_token),
):
    """Resolve the caller's session view or fail with 401."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    view = request.app.state.container.auth_service.validate_session(token)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session not found or expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return view


class RequirePermission:
    """Dependency that checks the session's permission snapshot."""

    def __init__(self, *permissions: str):
        self.permissions = permissions

    async def __call__(self, session=Depends(get_current_session)):
        granted = set(session.permissions)
        if not any(p in granted for p in self.permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(self.permissions)}",
            )
        return session


class RequireRole:
    """Dependency that checks if the session holds a minimum role level."""

    def __init__(self, min_role: str):
        self.min_role = min_role

    async def __call__(self, request: Request, session=Depends(get_current_session)):
        registry = request.app.state.container.role_registry
        if not registry.has_equal_or_higher_role(session.role, self.min_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{session.role}' insufficient. Requires {self.min_role} or higher.",
            )
        return session


# Convenience dependency factories
require_registrar = RequireRole("UniversityRegistrar")
require_system_admin = RequireRole("SystemAdministrator")
