"""Google OAuth adapter: consent URL, token verification, code exchange, revocation."""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from docutrack.core.config import Settings
from docutrack.core.exceptions import ConfigurationError, ErrorCode, OAuthProviderError
from docutrack.services.google_oauth import (
    GOOGLE_TOKEN_INFO_URL,
    GoogleOAuthService,
    HttpGoogleVerifier,
)

from conftest import GOOGLE_CLIENT_ID

pytestmark = pytest.mark.anyio

STATE = "csrf_0123456789abcdef0123"
CODE = "4/0AbCdEfGhIjKlMn"


@pytest.fixture
def google(container):
    return container.google_oauth


def test_requires_configuration(auth_service):
    with pytest.raises(ConfigurationError) as exc:
        GoogleOAuthService(auth_service, Settings(GOOGLE_CLIENT_ID=None, GOOGLE_CLIENT_SECRET=None))
    assert "GOOGLE_CLIENT_ID" in exc.value.message
    assert "GOOGLE_CLIENT_SECRET" in exc.value.message


def test_auth_url(google):
    result = google.generate_auth_url()
    url = urlparse(result.auth_url)
    params = parse_qs(url.query)

    assert url.netloc == "accounts.google.com"
    assert result.state.startswith("csrf_")
    assert params["state"] == [result.state]
    assert params["client_id"] == [GOOGLE_CLIENT_ID]
    assert params["response_type"] == ["code"]
    assert params["scope"] == ["openid email profile"]
    assert params["hd"] == ["@xu.edu.ph,@my.xu.edu.ph"]


def test_auth_url_keeps_given_state(google):
    assert google.generate_auth_url(STATE).state == STATE


async def test_authenticate_with_valid_token(google, fake_google, auth_service):
    fake_google.add_account("good-token", "evaluator@xu.edu.ph", name="Eva Luator")

    result = await google.authenticate_with_google("good-token")

    assert result.success
    assert result.user["name"] == "Eva Luator"
    assert auth_service.validate_session(result.session.session_id).role == "Evaluator"


async def test_authenticate_rejections(google, fake_google):
    fake_google.add_account("other-app", "evaluator@xu.edu.ph", aud="another-client")
    fake_google.add_account("unverified", "evaluator@xu.edu.ph", verified=False)
    fake_google.add_account("gmail", "someone@gmail.com")

    assert (await google.authenticate_with_google(None)).error_code == ErrorCode.MISSING_TOKEN
    assert (await google.authenticate_with_google("unknown")).error_code == ErrorCode.INVALID_TOKEN
    assert (await google.authenticate_with_google("other-app")).error_code == ErrorCode.INVALID_TOKEN
    assert (await google.authenticate_with_google("unverified")).error_code == ErrorCode.INVALID_TOKEN
    gmail = await google.authenticate_with_google("gmail")
    assert gmail.error_code == ErrorCode.UNAUTHORIZED_DOMAIN
    assert gmail.message == "Email domain is not authorized for this system"


def test_environment_defaults_to_production():
    assert Settings.model_fields["ENVIRONMENT"].default == "production"


async def test_verification_failure_details_only_in_development(google, fake_google, settings):
    fake_google.failing_tokens.add("flaky")

    dev = await google.authenticate_with_google("flaky")
    assert dev.error_code == ErrorCode.VERIFICATION_FAILED
    assert dev.message == "Failed to verify Google token"
    assert dev.details == "Request timeout (ID: abc123)"

    google.settings = settings.model_copy(update={"ENVIRONMENT": "production"})
    prod = await google.authenticate_with_google("flaky")
    assert prod.error_code == ErrorCode.VERIFICATION_FAILED
    assert prod.details is None


@pytest.mark.parametrize(
    "code,state,details",
    [
        (None, STATE, "Invalid authorization code"),
        ("short", STATE, "Invalid authorization code"),
        (CODE, None, "Invalid CSRF state token"),
        (CODE, "nocsrf_0123456789abcdef", "Invalid CSRF state token"),
        (CODE, "csrf_short", "Invalid CSRF state token"),
    ],
)
async def test_callback_parameter_checks(google, code, state, details):
    result = await google.handle_oauth_callback(code, state)
    assert result.error_code == ErrorCode.INVALID_PARAMS
    assert result.details == details


async def test_callback_success(google, fake_google):
    fake_google.add_account("token-from-code", "registrar@xu.edu.ph")
    fake_google.codes[CODE] = {"access_token": "token-from-code", "token_type": "Bearer"}

    result = await google.handle_oauth_callback(CODE, STATE)

    assert result.success
    assert result.user["role"] == "UniversityRegistrar"
    assert result.login_method == "google_oauth"


async def test_callback_exchange_failures(google, fake_google):
    fake_google.failing_codes.add(CODE)
    failed = await google.handle_oauth_callback(CODE, STATE)
    assert failed.error_code == ErrorCode.TOKEN_EXCHANGE_FAILED

    fake_google.failing_codes.clear()
    fake_google.codes[CODE] = {"token_type": "Bearer"}
    no_token = await google.handle_oauth_callback(CODE, STATE)
    assert no_token.error_code == ErrorCode.INVALID_AUTH_CODE


async def test_logout_revokes_token(google, fake_google):
    fake_google.add_account("tok", "intern@my.xu.edu.ph")
    session_id = (await google.authenticate_with_google("tok")).session.session_id

    result = await google.logout(session_id, "tok")

    assert result.success
    assert result.google_token_revoked is True
    assert result.message == "Google OAuth session terminated successfully"
    assert fake_google.revoked == ["tok"]


async def test_failed_revocation_does_not_block_logout(google, fake_google, auth_service):
    fake_google.add_account("tok", "intern@my.xu.edu.ph")
    fake_google.unrevocable.add("tok")
    session_id = (await google.authenticate_with_google("tok")).session.session_id

    result = await google.logout(session_id, "tok")

    assert result.success
    assert result.google_token_revoked is False
    assert result.message == "Session terminated successfully (Google token revocation failed)"
    assert auth_service.validate_session(session_id) is None


async def test_logout_of_unknown_session(google):
    result = await google.logout("sess_unknown", "tok")
    assert not result.success
    assert result.error_code == ErrorCode.SESSION_NOT_FOUND
    assert result.google_token_revoked is True


# ---- HttpGoogleVerifier ----

def verifier_with(handler):
    return HttpGoogleVerifier(
        GOOGLE_CLIENT_ID, "secret", "http://test/callback", timeout=1.0, transport=httpx.MockTransport(handler)
    )


async def test_http_token_info():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json={"email": "evaluator@xu.edu.ph", "email_verified": "true"})

    info = await verifier_with(handler).token_info("abc")

    assert info["email"] == "evaluator@xu.edu.ph"
    assert str(seen[0].url).startswith(GOOGLE_TOKEN_INFO_URL)
    assert seen[0].url.params["access_token"] == "abc"
    assert seen[0].headers["X-Request-ID"]


async def test_http_exchange_code_posts_form():
    def handler(request: httpx.Request):
        body = parse_qs(request.content.decode())
        assert body["grant_type"] == ["authorization_code"]
        assert body["code"] == [CODE]
        return httpx.Response(200, json={"access_token": "xyz"})

    assert await verifier_with(handler).exchange_code(CODE) == {"access_token": "xyz"}


async def test_http_error_status_is_wrapped():
    verifier = verifier_with(lambda request: httpx.Response(400, json={"error": "invalid_token"}))
    with pytest.raises(OAuthProviderError) as exc:
        await verifier.token_info("bad")
    assert exc.value.message == "Google API request failed with status 400"
    assert exc.value.request_id


async def test_http_timeout_is_wrapped():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(OAuthProviderError) as exc:
        await verifier_with(handler).user_info("tok")
    assert exc.value.message.startswith("Request timeout (ID: ")


async def test_http_invalid_json_is_wrapped():
    verifier = verifier_with(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(OAuthProviderError) as exc:
        await verifier.token_info("tok")
    assert exc.value.message == "Invalid response from Google API"


async def test_http_empty_revoke_response():
    verifier = verifier_with(lambda request: httpx.Response(200))
    assert await verifier.revoke("tok") is None
