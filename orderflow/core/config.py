"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Orderflow API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|test|staging|production)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Database
    database_url: str = "postgresql+asyncpg://localhost/orderflow"
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Auth (tokens are issued by the external auth service)
    secret_key: str = Field(min_length=32)
    jwt_algorithm: str = "HS256"

    # Stripe
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance: int = 300  # seconds

    # Money
    currency: str = "GBP"
    vat_rate: Decimal = Decimal("20")
    invoice_due_days: int = 30
    income_source: str = "Online Store"

    # Loyalty
    points_per_pound_spent: int = 10
    points_per_pound_discount: int = 100
    min_points_to_redeem: int = 500

    # Orders
    share_token_length: int = 16
    default_page_size: int = 20
    max_page_size: int = 100

    # Notifications
    resend_api_key: Optional[str] = None
    email_from: str = "Orders <orders@example.com>"

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
