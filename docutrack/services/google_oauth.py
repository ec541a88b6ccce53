"""Google OAuth adapter: auth URL, token verification, code exchange, revocation.

Network access goes through a ``GoogleTokenVerifier``; ``HttpGoogleVerifier``
talks to Google with httpx, tests plug in a fake. Transport failures surface
as ``OAuthProviderError`` and are turned into result codes here.
"""

import logging
import secrets
from typing import Any, Dict, Optional, Protocol, Union
from urllib.parse import urlencode, quote

import httpx

from docutrack.core.config import Settings
from docutrack.core.exceptions import ConfigurationError, ErrorCode, OAuthProviderError
from docutrack.core.security import generate_csrf_state
from docutrack.schemas.schemas import AuthUrlResponse, GoogleIdentity, LogoutResult, OAuthResult
from docutrack.services.auth_service import AuthService

logger = logging.getLogger("docutrack.oauth")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_TOKEN_INFO_URL = "https://oauth2.googleapis.com/tokeninfo"

CSRF_STATE_PREFIX = "csrf_"

ERROR_MESSAGES = {
    ErrorCode.MISSING_TOKEN: "Access token is required",
    ErrorCode.INVALID_TOKEN: "Google token verification failed",
    ErrorCode.UNAUTHORIZED_DOMAIN: "Email domain is not authorized for this system",
    ErrorCode.USER_NOT_AUTHORIZED: "User is not authorized to access this system",
    ErrorCode.INVALID_AUTH_CODE: "Failed to exchange authorization code for access token",
    ErrorCode.TOKEN_EXCHANGE_FAILED: "Failed to exchange authorization code for access token",
    ErrorCode.INVALID_PARAMS: "Invalid request parameters",
    ErrorCode.VERIFICATION_FAILED: "Failed to verify Google token",
}


class GoogleTokenVerifier(Protocol):
    """Transport to Google's OAuth endpoints. Implementations raise OAuthProviderError."""

    async def token_info(self, access_token: str) -> Dict[str, Any]: ...

    async def user_info(self, access_token: str) -> Dict[str, Any]: ...

    async def exchange_code(self, code: str) -> Dict[str, Any]: ...

    async def revoke(self, token: str) -> None: ...


class HttpGoogleVerifier:
    """GoogleTokenVerifier backed by ``httpx.AsyncClient`` with a hard timeout."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        request_id = secrets.token_hex(8)
        headers = {"Accept": "application/json", "X-Request-ID": request_id, **kwargs.pop("headers", {})}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()
                if not response.content:
                    return {}
                return response.json()
        except httpx.TimeoutException as e:
            raise OAuthProviderError(f"Request timeout (ID: {request_id})", request_id=request_id) from e
        except httpx.HTTPStatusError as e:
            raise OAuthProviderError(
                f"Google API request failed with status {e.response.status_code}", request_id=request_id
            ) from e
        except httpx.HTTPError as e:
            raise OAuthProviderError(f"Google API request failed: {e}", request_id=request_id) from e
        except ValueError as e:
            raise OAuthProviderError("Invalid response from Google API", request_id=request_id) from e

    async def token_info(self, access_token: str) -> Dict[str, Any]:
        return await self._request("GET", GOOGLE_TOKEN_INFO_URL, params={"access_token": access_token})

    async def user_info(self, access_token: str) -> Dict[str, Any]:
        return await self._request(
            "GET", GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
        )

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )

    async def revoke(self, token: str) -> None:
        await self._request("POST", GOOGLE_REVOKE_URL, data={"token": token})


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class GoogleOAuthService:
    """Google sign-in for whitelisted university accounts."""

    def __init__(self, auth_service: AuthService, settings: Settings, verifier: Optional[GoogleTokenVerifier] = None):
        missing = [
            name for name in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REDIRECT_URI")
            if not getattr(settings, name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required Google OAuth configuration: {', '.join(missing)}")

        self.auth_service = auth_service
        self.settings = settings
        self.verifier = verifier or HttpGoogleVerifier(
            settings.GOOGLE_CLIENT_ID,
            settings.GOOGLE_CLIENT_SECRET,
            settings.GOOGLE_REDIRECT_URI,
            timeout=settings.OAUTH_REQUEST_TIMEOUT_SECONDS,
        )

    def _error(self, code: ErrorCode, details: Optional[str] = None) -> OAuthResult:
        return OAuthResult(
            success=False,
            message=ERROR_MESSAGES[code],
            error_code=code,
            details=details if self.settings.is_development else None,
        )

    def generate_auth_url(self, state: Optional[str] = None) -> AuthUrlResponse:
        """Build the consent URL. The ``hd`` hint is advisory only."""
        csrf_state = state or generate_csrf_state()
        params = {
            "client_id": self.settings.GOOGLE_CLIENT_ID,
            "redirect_uri": self.settings.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": "openid email profile",
            "state": csrf_state,
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "hd": ",".join(self.settings.VALID_DOMAINS),
        }
        return AuthUrlResponse(auth_url=f"{GOOGLE_AUTH_URL}?{urlencode(params, quote_via=quote)}", state=csrf_state)

    @staticmethod
    def validate_callback_params(code, state) -> Optional[str]:
        """Return an error description, or None when the params are usable."""
        if not code or not isinstance(code, str) or len(code) < 10:
            return "Invalid authorization code"
        if not state or not isinstance(state, str) or not state.startswith(CSRF_STATE_PREFIX) or len(state) < 20:
            return "Invalid CSRF state token"
        return None

    def _token_info_is_valid(self, info: Dict[str, Any]) -> bool:
        return bool(
            info.get("email")
            and _as_bool(info.get("email_verified"))
            and info.get("aud") == self.settings.GOOGLE_CLIENT_ID
        )

    async def verify_google_token(self, access_token: Optional[str]) -> Union[GoogleIdentity, OAuthResult]:
        """Resolve an access token to verified claims, or a failed result."""
        if not access_token:
            return self._error(ErrorCode.MISSING_TOKEN)
        try:
            info = await self.verifier.token_info(access_token)
            if not self._token_info_is_valid(info):
                return self._error(ErrorCode.INVALID_TOKEN)
            profile = await self.verifier.user_info(access_token)
        except OAuthProviderError as e:
            logger.warning("Google token verification failed (request %s): %s", e.request_id, e.message)
            return self._error(ErrorCode.VERIFICATION_FAILED, e.message)

        return GoogleIdentity(
            email=info["email"],
            email_verified=_as_bool(info.get("email_verified")),
            audience=info.get("aud"),
            name=profile.get("name"),
            picture=profile.get("picture"),
            hosted_domain=info.get("hd"),
        )

    async def authenticate_with_google(self, access_token: Optional[str]) -> OAuthResult:
        verified = await self.verify_google_token(access_token)
        if isinstance(verified, OAuthResult):
            return verified
        return self.auth_service.authenticate_with_google(verified)

    async def handle_oauth_callback(self, code, state) -> OAuthResult:
        problem = self.validate_callback_params(code, state)
        if problem is not None:
            # Parameter problems are safe to show in every environment
            return OAuthResult(
                success=False,
                message=ERROR_MESSAGES[ErrorCode.INVALID_PARAMS],
                error_code=ErrorCode.INVALID_PARAMS,
                details=problem,
            )
        try:
            tokens = await self.verifier.exchange_code(code)
        except OAuthProviderError as e:
            logger.warning("Authorization code exchange failed (request %s): %s", e.request_id, e.message)
            return self._error(ErrorCode.TOKEN_EXCHANGE_FAILED, e.message)

        access_token = tokens.get("access_token")
        if not access_token:
            return self._error(ErrorCode.INVALID_AUTH_CODE)
        return await self.authenticate_with_google(access_token)

    async def logout(self, session_id: str, google_token: Optional[str] = None) -> LogoutResult:
        """Revoke the Google token if given, then end the local session.

        A failed revocation never blocks the local logout.
        """
        revoked = False
        if google_token:
            try:
                await self.verifier.revoke(google_token)
                revoked = True
            except OAuthProviderError as e:
                logger.error("Failed to revoke Google token (request %s): %s", e.request_id, e.message)

        local = self.auth_service.logout(session_id)
        if not local.success:
            return local.model_copy(update={"google_token_revoked": revoked})
        return LogoutResult(
            success=True,
            message=(
                "Google OAuth session terminated successfully"
                if revoked
                else "Session terminated successfully (Google token revocation failed)"
            ),
            google_token_revoked=revoked,
        )
