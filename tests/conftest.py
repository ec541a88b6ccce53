"""
Pytest configuration for DocuTrack tests.

Every test gets a fresh service container: in-memory stores, a controllable
clock, no password delay, low bcrypt cost and a fake Google transport.
"""
import copy
from datetime import datetime, timedelta, timezone
from typing import Dict

import httpx
import pytest
from httpx import ASGITransport

from docutrack.core.config import Settings
from docutrack.core.exceptions import OAuthProviderError
from docutrack.core.security import no_delay
from docutrack.db.seeds.seed_whitelist import DEFAULT_WHITELIST
from docutrack.main import create_app
from docutrack.models.role import Role
from docutrack.schemas.schemas import SessionView
from docutrack.services.role_registry import RoleRegistry
from docutrack.wiring import build_container

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
GOOGLE_CLIENT_ID = "test-client.apps.googleusercontent.com"

PASSWORDS: Dict[str, str] = {email: password for email, _, password, _ in DEFAULT_WHITELIST}


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGoogleVerifier:
    """In-memory stand-in for Google's tokeninfo/userinfo/token/revoke endpoints."""

    def __init__(self):
        self.tokens: Dict[str, dict] = {}
        self.codes: Dict[str, dict] = {}
        self.failing_tokens = set()
        self.failing_codes = set()
        self.unrevocable = set()
        self.revoked = []

    def add_account(self, token: str, email: str, verified: bool = True, aud: str = GOOGLE_CLIENT_ID,
                    name: str = "Test User") -> None:
        self.tokens[token] = {
            "info": {"email": email, "email_verified": "true" if verified else "false", "aud": aud},
            "profile": {"email": email, "name": name, "picture": "https://example.com/p.png"},
        }

    async def token_info(self, access_token):
        if access_token in self.failing_tokens:
            raise OAuthProviderError("Request timeout (ID: abc123)", request_id="abc123")
        if access_token not in self.tokens:
            return {}
        return dict(self.tokens[access_token]["info"])

    async def user_info(self, access_token):
        return dict(self.tokens[access_token]["profile"])

    async def exchange_code(self, code):
        if code in self.failing_codes:
            raise OAuthProviderError("Google API request failed with status 400", request_id="def456")
        return dict(self.codes.get(code, {}))

    async def revoke(self, token):
        if token in self.unrevocable:
            raise OAuthProviderError("Google API request failed with status 400")
        self.revoked.append(token)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        BCRYPT_ROUNDS=4,
        ENVIRONMENT="development",
        DEBUG=False,
        GOOGLE_CLIENT_ID=GOOGLE_CLIENT_ID,
        GOOGLE_CLIENT_SECRET="test-secret",
        GOOGLE_REDIRECT_URI="http://test/api/auth/google/callback",
    )


@pytest.fixture
def fake_google():
    return FakeGoogleVerifier()


@pytest.fixture
def container(settings, clock, fake_google):
    return build_container(settings, clock=clock, delay=no_delay, google_verifier=fake_google)


@pytest.fixture
def auth_service(container):
    return container.auth_service


@pytest.fixture
def app(container):
    return create_app(container=container)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def make_view(role: Role, email: str = None, clock_now: datetime = START) -> SessionView:
    """Build a session view for a role without going through login."""
    registry = RoleRegistry()
    email = email or f"{role.value.lower()}@{'my.' if role in (Role.STUDENT_ASSISTANT, Role.INTERN) else ''}xu.edu.ph"
    return SessionView(
        session_id="sess_test",
        email=email,
        role=role.value,
        permissions=sorted(registry.permissions_of(role)),
        role_level=registry.level_of(role),
        domain=email[email.index("@"):],
        is_active=True,
        created_at=clock_now,
        last_accessed_at=clock_now,
        expires_at=clock_now + timedelta(hours=24),
    )


async def login_token(auth_service, email: str) -> str:
    result = await auth_service.login(email, PASSWORDS[email])
    assert result.success, result.message
    return result.session.session_id


VALID_REQUEST = {
    "studentDetails": {
        "lastName": "  dela Cruz ",
        "firstName": "Juan",
        "middleName": "O'Neil",
        "year": "3rd Year",
        "program": "BS Computer Science",
        "contactNumber": "0917-123-4567",
        "evaluator": "Evaluator@XU.edu.ph",
    },
    "requestedDocuments": {
        "documents": ["Transcript of Records", "Diploma"],
        "originalQuantities": [1, 0],
        "authenticatedQuantities": [2, 1],
        "otherDocuments": "",
    },
    "otherDetails": {
        "controlNumber": "12345",
        "amount": "150.50",
        "dueDate": "2026-03-10",
        "receiveOption": "pickup",
    },
    "remarks": {"comment": "Rush", "isPublic": False},
}


def request_data(**sections):
    data = copy.deepcopy(VALID_REQUEST)
    for key, overrides in sections.items():
        data[key].update(overrides)
    return data
