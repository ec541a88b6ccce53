"""Builds the service graph. One container per app (or per test)."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request

from docutrack.core.clock import Clock, utc_now
from docutrack.core.config import Settings, settings as default_settings
from docutrack.core.security import DelayPolicy, random_delay
from docutrack.db.request_store import RequestStore
from docutrack.db.seeds.seed_sample_data import seed_sample_data
from docutrack.db.seeds.seed_whitelist import seed_whitelist
from docutrack.db.user_store import WhitelistStore
from docutrack.services.audit_service import AuditService
from docutrack.services.auth_service import AuthService
from docutrack.services.data_entry_service import DataEntryService
from docutrack.services.google_oauth import GoogleOAuthService, GoogleTokenVerifier
from docutrack.services.login_throttle import LoginThrottle
from docutrack.services.role_registry import RoleRegistry
from docutrack.services.session_store import SessionStore
from docutrack.services.tracking_service import TrackingService

logger = logging.getLogger("docutrack")


@dataclass
class ServiceContainer:
    settings: Settings
    clock: Clock
    audit: AuditService
    role_registry: RoleRegistry
    sessions: SessionStore
    throttle: LoginThrottle
    whitelist: WhitelistStore
    request_store: RequestStore
    auth_service: AuthService
    data_entry_service: DataEntryService
    tracking_service: TrackingService
    google_oauth: Optional[GoogleOAuthService] = None


def build_container(
    settings: Optional[Settings] = None,
    clock: Clock = utc_now,
    delay: Optional[DelayPolicy] = None,
    google_verifier: Optional[GoogleTokenVerifier] = None,
    seed: bool = True,
) -> ServiceContainer:
    """Wire fresh stores and services. Nothing here is a module-level singleton."""
    settings = settings or default_settings
    delay = delay or random_delay(settings.PASSWORD_DELAY_MIN_MS, settings.PASSWORD_DELAY_MAX_MS)

    audit = AuditService(clock=clock)
    registry = RoleRegistry()
    sessions = SessionStore(
        registry,
        audit=audit,
        timeout=timedelta(hours=settings.SESSION_TIMEOUT_HOURS),
        clock=clock,
    )
    throttle = LoginThrottle(
        max_attempts=settings.MAX_LOGIN_ATTEMPTS,
        lockout_duration=timedelta(minutes=settings.LOCKOUT_MINUTES),
    )
    whitelist = WhitelistStore()
    request_store = RequestStore()

    if seed:
        seed_whitelist(whitelist, rounds=settings.BCRYPT_ROUNDS)
        if settings.SEED_SAMPLE_DATA:
            seed_sample_data(request_store)

    auth_service = AuthService(
        registry,
        sessions,
        throttle,
        whitelist,
        audit,
        settings,
        clock=clock,
        delay=delay,
    )

    google_oauth = None
    if settings.google_oauth_configured:
        google_oauth = GoogleOAuthService(auth_service, settings, verifier=google_verifier)
    else:
        logger.warning("⚠️  Google OAuth not configured; /api/auth/google is disabled")

    return ServiceContainer(
        settings=settings,
        clock=clock,
        audit=audit,
        role_registry=registry,
        sessions=sessions,
        throttle=throttle,
        whitelist=whitelist,
        request_store=request_store,
        auth_service=auth_service,
        data_entry_service=DataEntryService(request_store, audit=audit, clock=clock),
        tracking_service=TrackingService(request_store),
        google_oauth=google_oauth,
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the app's container."""
    return request.app.state.container
