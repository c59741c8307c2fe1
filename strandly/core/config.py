"""
strandly/core/config.py
───────────────────────
Centralised, type-safe settings powered by pydantic-settings.
All environment variables are validated at startup; an inconsistent
delivery configuration raises an immediate, descriptive error instead
of failing on the first paid order.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from limits import parse_many
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    APP_ENV: str = "development"
    APP_DEBUG: bool = True

    DATABASE_URL: str = "sqlite:///./strandly.db"

    ALLOWED_ORIGINS: str = "http://localhost:3000,https://strandly.shop,https://www.strandly.shop"

    # Flat fee for one analysis, in cents.
    ANALYSIS_PRICE_CENTS: int = 2900

    PRODUCTS_PER_CATEGORY: int = Field(default=3, ge=1)
    CATALOG_PATH: Optional[str] = None
    KNOWLEDGE_BASE_PATH: Optional[str] = None

    DELIVERY_BACKEND: Literal["log", "resend"] = "log"
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com"
    EMAIL_SENDER: str = "Strandly Hair Experts <analysis@strandly.shop>"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # Exposes /test/complete-payment for the mock checkout flow.
    ENABLE_TEST_ENDPOINTS: bool = False

    # ── Rate Limiting ────────────────────────────────────────────────────
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_QUIZ: str = "3/30minutes"
    RATE_LIMIT_CHECKOUT: str = "5/10minutes"
    RATE_LIMIT_PAYMENT_CALLBACK: str = "100/minute"

    @field_validator("RATE_LIMIT_QUIZ", "RATE_LIMIT_CHECKOUT", "RATE_LIMIT_PAYMENT_CALLBACK")
    @classmethod
    def parseable_rate_limit(cls, v: str) -> str:
        try:
            parse_many(v)
        except ValueError as exc:
            raise ValueError(f"Invalid rate limit '{v}': {exc}") from exc
        return v

    @model_validator(mode="after")
    def resend_backend_needs_key(self) -> "Settings":
        if self.DELIVERY_BACKEND == "resend" and not (self.RESEND_API_KEY or "").strip():
            raise ValueError(
                "RESEND_API_KEY is missing. Add it to your .env file or set DELIVERY_BACKEND=log."
            )
        return self

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def analysis_price_display(self) -> str:
        return f"${self.ANALYSIS_PRICE_CENTS / 100:.2f}"


@lru_cache
def get_settings() -> Settings:
    """Return a cached singleton of Settings."""
    return Settings()
