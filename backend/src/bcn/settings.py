"""Application settings and configuration."""

import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_DEFAULTS = {"change-me-in-production", "secret", "your_jwt_secret_key_here_at_least_32_characters"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "bcn"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console | json
    allowed_origins: str = "http://localhost:3000"
    frontend_url: str | None = None

    # JWT (tokens are issued by the identity provider, verified here)
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 2

    # Database
    database_url: str = "sqlite:///./bcn.db"

    # Stripe
    stripe_secret_key: str | None = None
    stripe_publishable_key: str | None = None
    payment_currency: str = "usd"

    # Outbound calls
    provider_timeout_seconds: float = 20.0
    publish_timeout_seconds: float = 2.0

    # SendGrid
    sendgrid_api_key: str | None = None
    sendgrid_from_email: str = "no-reply@bcnapp.io"
    sendgrid_from_name: str = "BCN App"

    # Notifications
    notification_list_limit: int = 50

    # Rate limiting (enforced in production only)
    rate_limit_default: str = "200/minute"
    rate_limit_invitation: str = "10/minute"
    rate_limit_charge: str = "5/minute"


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    if settings.jwt_secret_key in _INSECURE_JWT_DEFAULTS or len(settings.jwt_secret_key) < 32:
        print(
            "\n❌  FATAL: JWT_SECRET_KEY is insecure or too short (min 32 chars).\n"
            "   Set a strong random value:  openssl rand -hex 32\n",
            file=sys.stderr,
        )
        sys.exit(1)
