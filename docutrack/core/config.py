"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "DocuTrack"
    DEBUG: bool = True
    ENVIRONMENT: str = "production"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Sessions
    SESSION_TIMEOUT_HOURS: int = 24
    SESSION_SWEEP_INTERVAL_SECONDS: int = 300
    SESSION_COOKIE_NAME: str = "sessionToken"

    # Login throttling
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 30
    PASSWORD_DELAY_MIN_MS: int = 50
    PASSWORD_DELAY_MAX_MS: int = 150
    BCRYPT_ROUNDS: int = 12

    # Identity
    VALID_DOMAINS: list[str] = ["@xu.edu.ph", "@my.xu.edu.ph"]
    AUTO_PROVISION_DOMAIN: str = "@my.xu.edu.ph"
    DEFAULT_PROVISIONED_ROLE: str = "StudentAssistant"

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REDIRECT_URI: Optional[str] = "http://localhost:8000/api/auth/google/callback"
    OAUTH_REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Seeds
    SEED_SAMPLE_DATA: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET and self.GOOGLE_REDIRECT_URI)


settings = Settings()
