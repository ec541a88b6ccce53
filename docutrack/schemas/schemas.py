"""Pydantic schemas for service results and API request/response serialization.

Models serialize with camelCase aliases (the portal's wire format) and accept
either the alias or the field name on input.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime

from docutrack.core.exceptions import ErrorCode


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True


# ---- Auth ----
class LoginRequest(CamelModel):
    # Optional so that missing fields reach the MISSING_CREDENTIALS path
    email: Optional[str] = None
    password: Optional[str] = None

class UserSummary(CamelModel):
    email: str
    role: str
    permissions: List[str] = []
    full_name: Optional[str] = None

class SessionSummary(CamelModel):
    session_id: str
    created_at: datetime
    expires_at: datetime
    is_active: bool = True

class LoginResult(CamelModel):
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    retry_after: Optional[int] = None
    user: Optional[UserSummary] = None
    session: Optional[SessionSummary] = None
    login_method: Optional[str] = None

class SessionView(CamelModel):
    """Read-only copy of a live session handed to callers."""

    session_id: str
    email: str
    role: str
    permissions: List[str]
    role_level: int
    domain: str
    is_active: bool
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    login_method: str = "email_password"

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

class LogoutRequest(CamelModel):
    session_id: Optional[str] = None
    google_token: Optional[str] = None

class LogoutResult(CamelModel):
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    google_token_revoked: Optional[bool] = None

class SessionStatus(CamelModel):
    session_exists: bool
    is_active: bool = False
    created_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    destroyed_at: Optional[datetime] = None
    reason: Optional[str] = None
    login_method: Optional[str] = None


# ---- Google OAuth ----
class GoogleIdentity(BaseModel):
    """Claims returned by the provider after token verification."""

    email: str
    email_verified: bool = False
    audience: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    hosted_domain: Optional[str] = None

class AuthUrlResponse(CamelModel):
    auth_url: str
    state: str

class OAuthResult(CamelModel):
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    user: Optional[Dict[str, Any]] = None
    session: Optional[SessionSummary] = None
    login_method: Optional[str] = None
    details: Optional[str] = None


# ---- Admin ----
class RoleUpdateRequest(CamelModel):
    role: str

class WhitelistRequest(CamelModel):
    email: str = Field(..., min_length=4)
    role: str
    password: Optional[str] = None
    full_name: Optional[str] = None

class AdminResult(CamelModel):
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    data: Optional[Dict[str, Any]] = None


# ---- Requests ----
class ValidationResult(CamelModel):
    is_valid: bool
    errors: List[str] = []
    sanitized_data: Optional[Dict[str, Any]] = None

class RequestCreate(CamelModel):
    student_details: Optional[Dict[str, Any]] = None
    requested_documents: Optional[Dict[str, Any]] = None
    other_details: Optional[Dict[str, Any]] = None
    remarks: Optional[Dict[str, Any]] = None

class StatusUpdateRequest(CamelModel):
    status: str

class RequestResult(CamelModel):
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    errors: List[str] = []
    data: Optional[Dict[str, Any]] = None


# ---- Tracking ----
class TrackingResult(CamelModel):
    success: bool
    message: str
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


# ---- Audit ----
class AuditLogOut(CamelModel):
    id: int
    timestamp: datetime
    event_type: str
    action: str
    severity: str
    actor_email: Optional[str] = None
    details: Dict[str, Any] = {}

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

class AuditLogPage(CamelModel):
    logs: List[AuditLogOut] = []
    total: int
    page: int
    page_size: int
