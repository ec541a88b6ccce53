"""Auth service: password/OAuth login, session validation, logout, RBAC queries.

Every public operation returns a result model carrying an ``ErrorCode``
instead of raising, so callers can branch on the outcome. Store exceptions
are converted here.
"""

import asyncio
import logging
import re
from collections import Counter
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

from docutrack.core.clock import Clock, utc_now
from docutrack.core.config import Settings
from docutrack.core.exceptions import (
    ErrorCode,
    InvalidUserError,
    ResourceConflictError,
    SessionAlreadyDestroyedError,
    SessionNotFoundError,
)
from docutrack.core.security import DelayPolicy, hash_password, no_delay, verify_password
from docutrack.db.user_store import WhitelistStore
from docutrack.models.role import Role
from docutrack.models.session import DESTROYED_BY_LOGOUT, DESTROYED_BY_TIMEOUT, Session
from docutrack.models.user import User, email_domain
from docutrack.schemas.schemas import (
    AdminResult,
    GoogleIdentity,
    LoginResult,
    LogoutResult,
    OAuthResult,
    SessionStatus,
    SessionSummary,
    SessionView,
    UserSummary,
)
from docutrack.services.audit_service import AuditService
from docutrack.services.login_throttle import LoginThrottle
from docutrack.services.role_registry import RoleRegistry
from docutrack.services.session_store import SessionStore

logger = logging.getLogger("docutrack.auth")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

LOGIN_METHOD_PASSWORD = "email_password"
LOGIN_METHOD_GOOGLE = "google_oauth"

# Unknown user and wrong password share one message
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


class AuthService:
    """Authentication core composed over the registry, session store and throttle."""

    def __init__(
        self,
        registry: RoleRegistry,
        sessions: SessionStore,
        throttle: LoginThrottle,
        whitelist: WhitelistStore,
        audit: AuditService,
        settings: Settings,
        clock: Clock = utc_now,
        delay: DelayPolicy = no_delay,
    ):
        self.registry = registry
        self.sessions = sessions
        self.throttle = throttle
        self.whitelist = whitelist
        self.audit = audit
        self.settings = settings
        self._clock = clock
        self._delay = delay
        self._valid_domains = tuple(d.lower() for d in settings.VALID_DOMAINS)
        self._login_locks: Dict[str, List] = {}

    # ---- Identity checks ----

    def validate_email_domain(self, email: Optional[str]) -> bool:
        if not email or not isinstance(email, str):
            return False
        return email_domain(email.strip()) in self._valid_domains

    def lookup_whitelist(self, email: Optional[str]) -> Optional[User]:
        """Explicit whitelist entry, else an auto-provisioned low-privilege user.

        Only the student-worker domain auto-provisions; staff addresses must
        be listed explicitly.
        """
        if not email or not isinstance(email, str):
            return None
        email = email.strip().lower()
        user = self.whitelist.find(email)
        if user is not None:
            return user
        if email_domain(email) != self.settings.AUTO_PROVISION_DOMAIN.lower():
            return None
        role = self.registry.parse_role(self.settings.DEFAULT_PROVISIONED_ROLE)
        if role is None:
            logger.error("DEFAULT_PROVISIONED_ROLE %r is not a known role", self.settings.DEFAULT_PROVISIONED_ROLE)
            return None
        return User(email=email, role=role, provisioned=True)

    def validate_role_for_domain(self, email: str, role) -> bool:
        return self.registry.is_role_legal_for_email(email, role)

    def get_role_info(self, role) -> Dict[str, Any]:
        return self.registry.role_info(role)

    # ---- Login ----

    @staticmethod
    def _sanitize_login_input(email, password) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        """Return (email, password, None) or (None, None, reason)."""
        if not email or not password:
            return None, None, "Missing credentials"
        if not isinstance(email, str) or not isinstance(password, str):
            return None, None, "Invalid data type"
        clean_email = email.strip().lower()
        clean_password = password.strip()
        if not clean_email or not clean_password:
            return None, None, "Empty credentials"
        if not EMAIL_RE.match(clean_email):
            return None, None, "Invalid email format"
        return clean_email, clean_password, None

    @asynccontextmanager
    async def _identity_guard(self, identity: str):
        """Serialize logins for one identity across the delay suspension."""
        entry = self._login_locks.get(identity)
        if entry is None:
            entry = self._login_locks[identity] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._login_locks.pop(identity, None)

    def _fail(self, email: str, code: ErrorCode, message: str, details: Optional[dict] = None) -> LoginResult:
        now = self._clock()
        record = self.throttle.record_failure(email, now, code.value)
        self.audit.log(
            "LOGIN_ATTEMPT",
            code.value,
            actor_email=email,
            details={"attemptCount": record.failed_count, **(details or {})},
        )
        return LoginResult(success=False, message=message, error_code=code)

    def _summarize(self, session: Session) -> SessionSummary:
        return SessionSummary(
            session_id=session.session_id,
            created_at=session.created_at,
            expires_at=session.expires_at(self.sessions.timeout),
            is_active=session.is_active,
        )

    async def login(self, email, password) -> LoginResult:
        """Authenticate with email and password and issue a session."""
        clean_email, clean_password, reason = self._sanitize_login_input(email, password)
        if reason is not None:
            self.audit.log(
                "LOGIN_ATTEMPT",
                "INVALID_INPUT",
                actor_email=email if isinstance(email, str) else None,
                details={"reason": reason},
            )
            return LoginResult(
                success=False,
                message="Email and password are required",
                error_code=ErrorCode.MISSING_CREDENTIALS,
            )

        async with self._identity_guard(clean_email):
            return await self._login_serialized(clean_email, clean_password)

    async def _login_serialized(self, email: str, password: str) -> LoginResult:
        now = self._clock()
        if self.throttle.is_locked(email, now):
            retry_after = self.throttle.remaining_lock_seconds(email, now)
            self.throttle.record_failure(email, now, ErrorCode.ACCOUNT_LOCKED.value)
            self.audit.log(
                "LOGIN_ATTEMPT",
                ErrorCode.ACCOUNT_LOCKED.value,
                actor_email=email,
                details={"retryAfter": retry_after},
            )
            return LoginResult(
                success=False,
                message="Account temporarily locked due to multiple failed login attempts",
                error_code=ErrorCode.ACCOUNT_LOCKED,
                retry_after=retry_after,
            )

        if not self.validate_email_domain(email):
            return self._fail(email, ErrorCode.INVALID_DOMAIN, "Invalid email domain")

        user = self.lookup_whitelist(email)
        if user is None:
            await self._delay()
            return self._fail(email, ErrorCode.UNAUTHORIZED_USER, INVALID_CREDENTIALS_MESSAGE)

        await self._delay()
        if not verify_password(password, user.password_hash):
            return self._fail(email, ErrorCode.INVALID_PASSWORD, INVALID_CREDENTIALS_MESSAGE)

        try:
            session = self.sessions.create(user, login_method=LOGIN_METHOD_PASSWORD)
        except InvalidUserError as e:
            logger.warning("Session creation failed for %s: %s", email, e.message)
            return self._fail(email, ErrorCode.SESSION_CREATION_FAILED, "Failed to create session")

        self.throttle.record_success(email)
        self.audit.log(
            "LOGIN_SUCCESS",
            "USER_AUTHENTICATED",
            actor_email=email,
            details={"role": session.role.value, "loginMethod": LOGIN_METHOD_PASSWORD},
        )
        return LoginResult(
            success=True,
            message="Login successful",
            user=UserSummary(
                email=user.email,
                role=session.role.value,
                permissions=sorted(session.permissions),
                full_name=user.full_name,
            ),
            session=self._summarize(session),
            login_method=LOGIN_METHOD_PASSWORD,
        )

    # ---- Sessions ----

    def _to_view(self, session: Session) -> SessionView:
        return SessionView(
            session_id=session.session_id,
            email=session.email,
            role=session.role.value,
            permissions=sorted(session.permissions),
            role_level=session.role_level,
            domain=session.domain,
            is_active=session.is_active,
            created_at=session.created_at,
            last_accessed_at=session.last_accessed_at,
            expires_at=session.expires_at(self.sessions.timeout),
            login_method=session.login_method,
        )

    def validate_session(self, token) -> Optional[SessionView]:
        """Return a view of the live session behind ``token``, or None."""
        if not self.sessions.is_well_formed(token):
            return None
        session = self.sessions.get(token)
        if session is None or not session.is_active:
            return None

        now = self._clock()
        if self.sessions.expire_if_stale(session, now):
            try:
                self.sessions.destroy(token, DESTROYED_BY_TIMEOUT, now)
            except (SessionNotFoundError, SessionAlreadyDestroyedError):
                # Raced with a sweep or logout; either way it is gone
                pass
            return None

        self.sessions.touch(token, now)
        return self._to_view(session)

    def logout(self, token) -> LogoutResult:
        if not token:
            return LogoutResult(success=False, message="Session ID is required", error_code=ErrorCode.MISSING_SESSION)
        if not self.sessions.is_well_formed(token):
            return LogoutResult(
                success=False, message="Invalid session ID format", error_code=ErrorCode.INVALID_SESSION_FORMAT
            )
        try:
            self.sessions.destroy(token, DESTROYED_BY_LOGOUT)
        except SessionNotFoundError:
            return LogoutResult(
                success=False, message="Invalid or expired session", error_code=ErrorCode.SESSION_NOT_FOUND
            )
        except SessionAlreadyDestroyedError:
            return LogoutResult(
                success=False, message="Session already destroyed", error_code=ErrorCode.SESSION_ALREADY_DESTROYED
            )
        return LogoutResult(success=True, message="Session destroyed successfully")

    def has_permission(self, token, permission: Optional[str]) -> bool:
        view = self.validate_session(token)
        if view is None or not isinstance(permission, str):
            return False
        return permission in view.permissions

    def get_session_status(self, token) -> SessionStatus:
        session = self.sessions.get(token) if self.sessions.is_well_formed(token) else None
        if session is None:
            return SessionStatus(session_exists=False)
        return SessionStatus(
            session_exists=True,
            is_active=session.is_active,
            created_at=session.created_at,
            last_accessed_at=session.last_accessed_at,
            expires_at=session.expires_at(self.sessions.timeout),
            destroyed_at=session.destroyed_at,
            reason=session.destroyed_by,
            login_method=session.login_method,
        )

    def cleanup_expired_sessions(self) -> Dict[str, int]:
        cleaned = self.sessions.sweep_expired(self._clock())
        return {"cleaned_sessions": cleaned, "active_sessions": len(self.sessions.active_sessions())}

    def get_security_audit_log(self, limit: int = 100):
        return self.audit.recent(limit)

    # ---- Google OAuth ----

    def authenticate_with_google(self, identity: GoogleIdentity) -> OAuthResult:
        """Issue a session for an identity the provider has already verified.

        No password step and no throttling; the ``hd`` hint sent to the
        provider is advisory, so the domain and whitelist checks run here.
        """
        email = (identity.email or "").strip().lower()
        if not identity.email_verified:
            self.audit.log("OAUTH_LOGIN", ErrorCode.INVALID_TOKEN.value, actor_email=email,
                           details={"reason": "email not verified"})
            return OAuthResult(success=False, message="Google email is not verified",
                               error_code=ErrorCode.INVALID_TOKEN)
        if self.settings.GOOGLE_CLIENT_ID and identity.audience != self.settings.GOOGLE_CLIENT_ID:
            self.audit.log("OAUTH_LOGIN", ErrorCode.INVALID_TOKEN.value, actor_email=email,
                           details={"reason": "audience mismatch"})
            return OAuthResult(success=False, message="Token was not issued for this application",
                               error_code=ErrorCode.INVALID_TOKEN)
        if not self.validate_email_domain(email):
            self.audit.log("OAUTH_LOGIN", ErrorCode.UNAUTHORIZED_DOMAIN.value, actor_email=email)
            return OAuthResult(
                success=False,
                message="Email domain is not authorized for this system",
                error_code=ErrorCode.UNAUTHORIZED_DOMAIN,
            )

        user = self.lookup_whitelist(email)
        if user is None:
            self.audit.log("OAUTH_LOGIN", ErrorCode.USER_NOT_AUTHORIZED.value, actor_email=email)
            return OAuthResult(
                success=False,
                message="User is not authorized to access this system",
                error_code=ErrorCode.USER_NOT_AUTHORIZED,
            )

        try:
            session = self.sessions.create(user, login_method=LOGIN_METHOD_GOOGLE)
        except InvalidUserError as e:
            logger.warning("OAuth session creation failed for %s: %s", email, e.message)
            self.audit.log("OAUTH_LOGIN", ErrorCode.SESSION_CREATION_FAILED.value, actor_email=email)
            return OAuthResult(success=False, message="Failed to create session",
                               error_code=ErrorCode.SESSION_CREATION_FAILED)

        session.metadata["google"] = {"name": identity.name, "picture": identity.picture}
        self.audit.log(
            "LOGIN_SUCCESS",
            "GOOGLE_OAUTH_AUTHENTICATED",
            actor_email=email,
            details={"role": session.role.value, "loginMethod": LOGIN_METHOD_GOOGLE},
        )
        return OAuthResult(
            success=True,
            message="Google OAuth authentication successful",
            user={
                "email": user.email,
                "role": session.role.value,
                "permissions": sorted(session.permissions),
                "name": identity.name,
                "picture": identity.picture,
            },
            session=self._summarize(session),
            login_method=LOGIN_METHOD_GOOGLE,
        )

    # ---- Administration ----

    def _admin_view(self, token) -> Tuple[Optional[SessionView], Optional[AdminResult]]:
        view = self.validate_session(token)
        if view is None:
            return None, AdminResult(success=False, message="Invalid or expired session",
                                     error_code=ErrorCode.INVALID_SESSION)
        return view, None

    def _deny(self, view: SessionView, action: str) -> AdminResult:
        self.audit.log("ADMIN", "PERMISSION_DENIED", actor_email=view.email, details={"action": action})
        return AdminResult(success=False, message="Insufficient permissions",
                           error_code=ErrorCode.INSUFFICIENT_PERMISSIONS)

    def can_manage_role(self, token, target_role) -> bool:
        """Only a live SystemAdministrator session manages roles."""
        view = self.validate_session(token)
        if view is None or self.registry.parse_role(target_role) is None:
            return False
        return view.role == Role.SYSTEM_ADMINISTRATOR.value

    def get_system_status(self, token) -> Optional[Dict[str, Any]]:
        if not self.can_manage_role(token, Role.SYSTEM_ADMINISTRATOR):
            return None
        now = self._clock()
        active = self.sessions.active_sessions()
        return {
            "timestamp": now.isoformat(),
            "activeUsersByRole": dict(Counter(s.role.value for s in active)),
            "securityStatistics": {
                "totalUsers": len(self.whitelist),
                "activeSessionsCount": len(active),
                "lockedAccounts": self.throttle.locked_count(now),
                "recentSecurityEvents": len(self.audit.recent(50)),
            },
            "roleHierarchy": {r.value: self.registry.level_of(r) for r in self.registry.roles},
            "domainRestrictions": {
                d: sorted(r.value for r in self.registry.roles_for_domain(d)) for d in self.registry.domains
            },
            "systemHealth": "operational",
        }

    def get_user_details(self, token, email: str) -> Optional[Dict[str, Any]]:
        view = self.validate_session(token)
        if view is None or view.role not in (Role.SYSTEM_ADMINISTRATOR.value, Role.UNIVERSITY_REGISTRAR.value):
            return None
        user = self.lookup_whitelist(email)
        if user is None:
            return None
        now = self._clock()
        attempts = self.throttle.attempts_summary(user.email, now)
        active = [s for s in self.sessions.sessions_for(user.email) if s.is_active]
        return {
            "email": user.email,
            "role": user.role.value,
            "fullName": user.full_name,
            "roleInfo": self.registry.role_info(user.role),
            "loginHistory": attempts,
            "activeSessionsCount": len(active),
            "lastActivity": max((s.last_accessed_at for s in active), default=None),
            "accountStatus": "locked" if attempts["isLocked"] else "active",
            "provisioned": user.provisioned,
        }

    def list_users(self) -> List[Dict[str, Any]]:
        return [
            {"email": u.email, "role": u.role.value, "fullName": u.full_name, "domain": u.domain}
            for u in self.whitelist.all()
        ]

    def validate_system_integrity(self) -> Dict[str, Any]:
        """Report whitelist entries whose role is illegal for their domain, and orphaned sessions."""
        users = self.whitelist.all()
        issues = [
            {"type": "INVALID_ROLE_DOMAIN", "user": u.email, "role": u.role.value, "domain": u.domain}
            for u in users
            if not self.registry.is_role_legal_for_email(u.email, u.role)
        ]
        active = self.sessions.active_sessions()
        orphaned = [s for s in active if s.email not in self.whitelist]
        warnings = []
        if orphaned:
            warnings.append({"type": "ORPHANED_SESSIONS", "count": len(orphaned)})
        return {
            "timestamp": self._clock().isoformat(),
            "issues": issues,
            "warnings": warnings,
            "statistics": {
                "totalUsers": len(users),
                "usersByDomain": dict(Counter(u.domain for u in users)),
                "usersByRole": dict(Counter(u.role.value for u in users)),
                "activeSessions": len(active),
            },
        }

    def change_user_role(self, token, email: str, new_role) -> AdminResult:
        """Reassign a whitelisted user's role. Live sessions keep their snapshot."""
        view, error = self._admin_view(token)
        if error is not None:
            return error
        if "modify_user_roles" not in view.permissions:
            return self._deny(view, "change_user_role")

        role = self.registry.parse_role(new_role)
        if role is None:
            return AdminResult(success=False, message=f"Unknown role '{new_role}'", error_code=ErrorCode.INVALID_ROLE)

        target = self.whitelist.find(email)
        if target is None:
            return AdminResult(success=False, message="User not found", error_code=ErrorCode.USER_NOT_FOUND)

        if view.role_level <= self.registry.level_of(target.role) or view.role_level <= self.registry.level_of(role):
            return self._deny(view, "change_user_role")

        if not self.registry.is_role_legal_for_email(target.email, role):
            return AdminResult(
                success=False,
                message=f"Role {role.value} is not allowed for {target.domain}",
                error_code=ErrorCode.INVALID_ROLE_FOR_DOMAIN,
            )

        previous = target.role
        self.whitelist.set_role(target.email, role)
        self.audit.log(
            "ADMIN",
            "ROLE_CHANGED",
            actor_email=view.email,
            details={"target": target.email, "from": previous.value, "to": role.value},
        )
        return AdminResult(
            success=True,
            message="Role updated",
            data={"email": target.email, "previousRole": previous.value, "role": role.value},
        )

    def whitelist_user(self, token, email: str, role, password: Optional[str] = None,
                       full_name: Optional[str] = None) -> AdminResult:
        view, error = self._admin_view(token)
        if error is not None:
            return error
        if "whitelist_users" not in view.permissions:
            return self._deny(view, "whitelist_user")

        if not self.validate_email_domain(email):
            return AdminResult(success=False, message="Invalid email domain", error_code=ErrorCode.INVALID_DOMAIN)
        parsed = self.registry.parse_role(role)
        if parsed is None:
            return AdminResult(success=False, message=f"Unknown role '{role}'", error_code=ErrorCode.INVALID_ROLE)
        if not self.registry.is_role_legal_for_email(email, parsed):
            return AdminResult(
                success=False,
                message=f"Role {parsed.value} is not allowed for {email_domain(email)}",
                error_code=ErrorCode.INVALID_ROLE_FOR_DOMAIN,
            )

        password_hash = hash_password(password, self.settings.BCRYPT_ROUNDS) if password else None
        try:
            user = self.whitelist.add(User(email=email, role=parsed, password_hash=password_hash, full_name=full_name))
        except ResourceConflictError as e:
            return AdminResult(success=False, message=e.message, error_code=ErrorCode.USER_EXISTS)

        self.audit.log("ADMIN", "USER_WHITELISTED", actor_email=view.email,
                       details={"target": user.email, "role": parsed.value})
        return AdminResult(success=True, message="User whitelisted", data={"email": user.email, "role": parsed.value})
