"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


PHONEPE_PRODUCTION_URL = "https://api.phonepe.com/apis/hermes"
PHONEPE_SANDBOX_URL = "https://api-preprod.phonepe.com/apis/pg-sandbox"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "invoicepe"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # API Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Postgres (Supabase)
    database_url: str = ""

    # Redis (Celery broker for notification tasks)
    redis_url: str = "redis://localhost:6379/0"

    # Supabase auth - bearer tokens are HS256 JWTs signed with this secret
    supabase_jwt_secret: str = ""
    jwt_audience: str = "authenticated"

    # PhonePe gateway
    # Secrets default to empty so the app boots; checksum code raises
    # ConfigurationError on first use when they are missing.
    phonepe_merchant_id: str = ""
    phonepe_salt_key: str = ""
    phonepe_salt_index: str = ""
    phonepe_environment: Literal["SANDBOX", "PRODUCTION"] = "SANDBOX"
    phonepe_timeout_seconds: float = 10.0
    phonepe_callback_url: str = ""

    # Mobile app deep links
    app_deep_link_scheme: str = "invoicepe"

    # Twilio SMS
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def phonepe_base_url(self) -> str:
        if self.phonepe_environment == "PRODUCTION":
            return PHONEPE_PRODUCTION_URL
        return PHONEPE_SANDBOX_URL


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
