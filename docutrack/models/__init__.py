"""Models package: in-memory records shared by the services."""

from docutrack.models.role import Role, ROLE_LEVELS, ROLE_PERMISSIONS, DOMAIN_ROLES, UNKNOWN_ROLE_LEVEL
from docutrack.models.user import User
from docutrack.models.session import Session
from docutrack.models.login_attempt import LoginAttemptRecord
from docutrack.models.request import DocumentRequest, StatusHistoryEntry
from docutrack.models.audit_log import AuditLog

__all__ = [
    "Role", "ROLE_LEVELS", "ROLE_PERMISSIONS", "DOMAIN_ROLES", "UNKNOWN_ROLE_LEVEL",
    "User", "Session", "LoginAttemptRecord",
    "DocumentRequest", "StatusHistoryEntry", "AuditLog",
]
