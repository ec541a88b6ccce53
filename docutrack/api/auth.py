"""Auth API router: login, logout, session lookups and Google sign-in."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from docutrack.core.exceptions import ErrorCode, result_response
from docutrack.core.security import get_current_session, get_session_token
from docutrack.schemas.schemas import (
    AuthUrlResponse,
    LoginRequest,
    LoginResult,
    LogoutRequest,
    OAuthResult,
    SessionStatus,
    SessionView,
)
from docutrack.wiring import ServiceContainer, get_container

router = APIRouter(prefix="/auth", tags=["auth"])

# Callers never learn whether the account or the password was wrong
_CREDENTIAL_FAILURES = {ErrorCode.UNAUTHORIZED_USER.value, ErrorCode.INVALID_PASSWORD.value}


def public_login_result(result: LoginResult) -> LoginResult:
    if result.error_code in _CREDENTIAL_FAILURES:
        return result.model_copy(
            update={"error_code": ErrorCode.INVALID_CREDENTIALS.value, "message": "Invalid credentials"}
        )
    return result


def _with_session_cookie(response: JSONResponse, container: ServiceContainer, session_id: str) -> JSONResponse:
    settings = container.settings
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        session_id,
        max_age=settings.SESSION_TIMEOUT_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=not settings.is_development,
    )
    return response


@router.post("/login")
async def login(body: LoginRequest, container: ServiceContainer = Depends(get_container)):
    """Authenticate with email and password."""
    result = public_login_result(await container.auth_service.login(body.email, body.password))
    headers = {"Retry-After": str(result.retry_after)} if result.retry_after else None
    response = result_response(result, headers=headers)
    if result.success:
        _with_session_cookie(response, container, result.session.session_id)
    return response


@router.post("/logout")
async def logout(
    body: Optional[LogoutRequest] = None,
    token: Optional[str] = Depends(get_session_token),
    container: ServiceContainer = Depends(get_container),
):
    """End the caller's session, revoking the Google token when one is supplied."""
    session_id = (body.session_id if body else None) or token
    google_token = body.google_token if body else None
    if google_token and container.google_oauth is not None:
        result = await container.google_oauth.logout(session_id, google_token)
    else:
        result = container.auth_service.logout(session_id)
    response = result_response(result)
    if result.success:
        response.delete_cookie(container.settings.SESSION_COOKIE_NAME)
    return response


@router.get("/me", response_model=SessionView)
async def get_me(session: SessionView = Depends(get_current_session)):
    """Current session view."""
    return session


@router.get("/session/{token}", response_model=SessionView)
async def validate_session(token: str, container: ServiceContainer = Depends(get_container)):
    view = container.auth_service.validate_session(token)
    if view is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return view


@router.get("/session/{token}/status", response_model=SessionStatus)
async def session_status(token: str, container: ServiceContainer = Depends(get_container)):
    return container.auth_service.get_session_status(token)


def _google(container: ServiceContainer):
    if container.google_oauth is None:
        raise HTTPException(status_code=503, detail="Google OAuth is not configured")
    return container.google_oauth


@router.get("/google", response_model=AuthUrlResponse)
async def google_auth_url(
    state: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container),
):
    """Consent URL for Google sign-in."""
    return _google(container).generate_auth_url(state)


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container),
):
    result: OAuthResult = await _google(container).handle_oauth_callback(code, state)
    response = result_response(result)
    if result.success:
        _with_session_cookie(response, container, result.session.session_id)
    return response
