"""Custom exception classes and error codes for DocuTrack."""

from enum import Enum

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse


class ErrorCategory(str, Enum):
    """Coarse failure taxonomy used to pick HTTP status and log level."""

    INPUT = "INPUT"
    AUTHORIZATION = "AUTHORIZATION"
    RATE_LIMIT = "RATE_LIMIT"
    CONFLICT = "CONFLICT"
    INFRASTRUCTURE = "INFRASTRUCTURE"


class ErrorCode(str, Enum):
    """Typed failure codes returned by public service operations."""

    # Login
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    INVALID_DOMAIN = "INVALID_DOMAIN"
    UNAUTHORIZED_USER = "UNAUTHORIZED_USER"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    SESSION_CREATION_FAILED = "SESSION_CREATION_FAILED"

    # Sessions
    MISSING_SESSION = "MISSING_SESSION"
    INVALID_SESSION_FORMAT = "INVALID_SESSION_FORMAT"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_ALREADY_DESTROYED = "SESSION_ALREADY_DESTROYED"
    INVALID_SESSION = "INVALID_SESSION"

    # Authorization / administration
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    INVALID_ROLE = "INVALID_ROLE"
    INVALID_ROLE_FOR_DOMAIN = "INVALID_ROLE_FOR_DOMAIN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_EXISTS = "USER_EXISTS"

    # Requests
    VALIDATION_FAILED = "VALIDATION_FAILED"
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Google OAuth
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    UNAUTHORIZED_DOMAIN = "UNAUTHORIZED_DOMAIN"
    USER_NOT_AUTHORIZED = "USER_NOT_AUTHORIZED"
    INVALID_PARAMS = "INVALID_PARAMS"
    INVALID_AUTH_CODE = "INVALID_AUTH_CODE"
    TOKEN_EXCHANGE_FAILED = "TOKEN_EXCHANGE_FAILED"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"


_CATEGORIES = {
    ErrorCode.ACCOUNT_LOCKED: ErrorCategory.RATE_LIMIT,
    ErrorCode.MISSING_CREDENTIALS: ErrorCategory.INPUT,
    ErrorCode.MISSING_SESSION: ErrorCategory.INPUT,
    ErrorCode.INVALID_SESSION_FORMAT: ErrorCategory.INPUT,
    ErrorCode.VALIDATION_FAILED: ErrorCategory.INPUT,
    ErrorCode.INVALID_PARAMS: ErrorCategory.INPUT,
    ErrorCode.MISSING_TOKEN: ErrorCategory.INPUT,
    ErrorCode.INVALID_ROLE: ErrorCategory.INPUT,
    ErrorCode.USER_EXISTS: ErrorCategory.CONFLICT,
    ErrorCode.INVALID_STATUS_TRANSITION: ErrorCategory.CONFLICT,
    ErrorCode.SESSION_ALREADY_DESTROYED: ErrorCategory.CONFLICT,
    ErrorCode.TOKEN_EXCHANGE_FAILED: ErrorCategory.INFRASTRUCTURE,
    ErrorCode.VERIFICATION_FAILED: ErrorCategory.INFRASTRUCTURE,
}


def category_of(code: ErrorCode) -> ErrorCategory:
    """Return the taxonomy bucket for an error code (AUTHORIZATION by default)."""
    return _CATEGORIES.get(code, ErrorCategory.AUTHORIZATION)


class DocuTrackError(Exception):
    """Base exception for DocuTrack."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ResourceNotFoundError(DocuTrackError):
    """Raised when a requested resource is not found."""
    pass


class ResourceConflictError(DocuTrackError):
    """Raised when a resource already exists."""
    pass


class InvalidUserError(DocuTrackError):
    """Raised when a session cannot be issued for a user record."""
    pass


class SessionNotFoundError(ResourceNotFoundError):
    """Raised when a session id is not in the store."""
    pass


class SessionAlreadyDestroyedError(DocuTrackError):
    """Raised when destroying a session that is already inactive."""
    pass


class OAuthProviderError(DocuTrackError):
    """Raised when the OAuth provider cannot be reached or rejects a call."""

    def __init__(self, message: str = "OAuth provider error", request_id: str = None):
        self.request_id = request_id
        super().__init__(message)


class ConfigurationError(DocuTrackError):
    """Raised when required configuration is missing."""
    pass


# HTTP exception shortcuts
def not_found(detail: str = "Resource not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def forbidden(detail: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


_CATEGORY_STATUS = {
    ErrorCategory.INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.AUTHORIZATION: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.RATE_LIMIT: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.INFRASTRUCTURE: status.HTTP_502_BAD_GATEWAY,
}

_CODE_STATUS = {
    ErrorCode.INSUFFICIENT_PERMISSIONS: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_ROLE_FOR_DOMAIN: status.HTTP_400_BAD_REQUEST,
    ErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.REQUEST_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SESSION_CREATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(code) -> int:
    """HTTP status for a failed result's error code."""
    code = ErrorCode(code)
    return _CODE_STATUS.get(code, _CATEGORY_STATUS[category_of(code)])


def result_response(result, success_status: int = status.HTTP_200_OK, headers: dict = None) -> JSONResponse:
    """Serialize a service result model, picking the status from its error code."""
    code = getattr(result, "error_code", None)
    status_code = success_status if result.success or code is None else http_status_for(code)
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )
