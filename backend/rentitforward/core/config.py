# backend/rentitforward/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEV_SECRET_KEY = "dev-secret-key-change-me"


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


def secret_or_plain(value: SecretStr | str | None) -> str:
    """Return the raw string for a SecretStr (or a plain string)."""
    if value is None:
        return ""
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return str(value)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    database_url: str = Field(
        default="sqlite:///./rentitforward.db",
        description="SQLAlchemy database URL",
    )

    # Auth
    secret_key: SecretStr = Field(
        default=SecretStr(DEV_SECRET_KEY),
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_currency: str = Field(default="aud", description="Default currency for payments")

    # Email
    email_provider: Literal["console", "resend"] = Field(
        default="console",
        alias="EMAIL_PROVIDER",
        description="Email provider name",
    )
    resend_api_key: Optional[str] = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider (optional)",
    )
    from_email: str = Field(default="Rent It Forward <hello@rentitforward.com.au>")
    reply_to_email: str = Field(default="support@rentitforward.com.au")

    # Web push
    vapid_public_key: str = Field(default="", description="VAPID public key (safe to expose)")
    vapid_private_key: SecretStr = Field(default=SecretStr(""))
    vapid_claims_email: str = Field(default="mailto:support@rentitforward.com.au")

    frontend_url: str = "https://rentitforward.com.au"
    redis_url: str = "redis://localhost:6379"

    # Pricing
    service_fee_rate: float = Field(default=0.15, ge=0, le=1, description="Renter service fee")
    insurance_rate: float = Field(default=0.10, ge=0, le=1, description="Optional damage cover")
    platform_commission_rate: float = Field(
        default=0.20, ge=0, le=1, description="Commission withheld from owner payouts"
    )
    points_to_currency_rate: float = Field(
        default=0.10, ge=0, description="Currency value of one loyalty point"
    )

    # Booking lifecycle
    min_booking_days: int = Field(default=1, ge=1)
    max_booking_days: int = Field(default=365, ge=1)
    hold_expiry_hours: int = Field(default=24, ge=1)
    approval_deadline_hours: int = Field(default=48, ge=1)
    min_evidence_photos: int = Field(default=3, ge=1)
    max_evidence_photos: int = Field(default=8, ge=1)
    pickup_early_days: int = Field(default=1, ge=0)
    late_cancellation_hours: int = Field(default=24, ge=0)
    late_cancellation_fee_rate: float = Field(default=0.5, ge=0, le=1)
    review_request_delay_hours: int = Field(default=24, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _guard_production_secrets(self) -> "Settings":
        if self.environment == "production" and self.secret_key.get_secret_value() == DEV_SECRET_KEY:
            raise ValueError("SECRET_KEY must be set in production")
        if self.min_evidence_photos > self.max_evidence_photos:
            raise ValueError("min_evidence_photos cannot exceed max_evidence_photos")
        return self

    @property
    def stripe_configured(self) -> bool:
        return bool(secret_or_plain(self.stripe_secret_key).strip())

    @property
    def push_configured(self) -> bool:
        return bool(self.vapid_public_key and secret_or_plain(self.vapid_private_key).strip())


settings = Settings()
