from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables with validation."""

    model_config = SettingsConfigDict(
        env_file=(str(Path(__file__).resolve().parents[1] / ".env"), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    app_name: str = Field(default="Headrest Billing API", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="production",
        alias="APP_ENV",
    )
    app_debug: bool = Field(default=False, alias="APP_DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        alias="CORS_ORIGINS",
    )

    database_url: str = Field(default="sqlite:///./headrest.db", alias="DATABASE_URL")

    stripe_secret_key: SecretStr = Field(default=SecretStr(""), alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: SecretStr = Field(default=SecretStr(""), alias="STRIPE_WEBHOOK_SECRET")
    stripe_api_version: str = Field(default="", alias="STRIPE_API_VERSION")

    # Base URL of the PrestaShop proxy backend, without the /api/v1 suffix.
    api_url: str = Field(default="", alias="API_URL")
    http_timeout_seconds: float = Field(default=30.0, gt=0, le=300, alias="HTTP_TIMEOUT_SECONDS")

    stripe_hobby_monthly_price_id: str = Field(default="", alias="STRIPE_HOBBY_MONTHLY_PRICE_ID")
    stripe_hobby_annual_price_id: str = Field(default="", alias="STRIPE_HOBBY_ANNUAL_PRICE_ID")
    stripe_starter_monthly_price_id: str = Field(default="", alias="STRIPE_STARTER_MONTHLY_PRICE_ID")
    stripe_starter_annual_price_id: str = Field(default="", alias="STRIPE_STARTER_ANNUAL_PRICE_ID")
    stripe_professional_monthly_price_id: str = Field(
        default="", alias="STRIPE_PROFESSIONAL_MONTHLY_PRICE_ID"
    )
    stripe_professional_annual_price_id: str = Field(
        default="", alias="STRIPE_PROFESSIONAL_ANNUAL_PRICE_ID"
    )
    stripe_business_monthly_price_id: str = Field(default="", alias="STRIPE_BUSINESS_MONTHLY_PRICE_ID")
    stripe_business_annual_price_id: str = Field(default="", alias="STRIPE_BUSINESS_ANNUAL_PRICE_ID")

    trial_days: int = Field(default=28, ge=1, le=365, alias="TRIAL_DAYS")
    handoff_ttl_hours: int = Field(default=24, alias="HANDOFF_TTL_HOURS")

    encryption_key: SecretStr = Field(default=SecretStr(""), alias="ENCRYPTION_KEY")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str]) -> list[str]:
        """Support comma-separated CORS origins from environment variables."""
        if isinstance(value, str):
            if not value.strip():
                return []
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("api_url")
    @classmethod
    def normalize_api_url(cls, value: str) -> str:
        """Strip whitespace and any trailing slash so paths can be appended."""
        return value.strip().rstrip("/")

    @field_validator("handoff_ttl_hours")
    @classmethod
    def validate_handoff_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("HANDOFF_TTL_HOURS must be a positive number of hours.")
        return value

    def price_id(self, plan_id: str, billing_period: str) -> str:
        """Return the configured Stripe price id for a plan tier and billing period."""
        return str(getattr(self, f"stripe_{plan_id}_{billing_period}_price_id", "") or "").strip()

    def missing_settings(self) -> list[str]:
        """Names of required environment variables that are unset."""
        required = {
            "STRIPE_SECRET_KEY": self.stripe_secret_key.get_secret_value(),
            "STRIPE_WEBHOOK_SECRET": self.stripe_webhook_secret.get_secret_value(),
            "API_URL": self.api_url,
        }
        for name, field in type(self).model_fields.items():
            if name.endswith("_price_id"):
                required[field.alias or name.upper()] = getattr(self, name)
        return sorted(key for key, value in required.items() if not str(value).strip())

    def placeholder_settings(self) -> list[str]:
        """Names of settings still carrying placeholder values from a template."""
        candidates = {"API_URL": self.api_url, "DATABASE_URL": self.database_url}
        return sorted(key for key, value in candidates.items() if "placeholder" in value.lower())


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings: Settings = get_settings()
