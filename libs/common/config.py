from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    # Isolation level for the checkout write (stock, orders, cart, promotions)
    CHECKOUT_ISOLATION_LEVEL: str = "SERIALIZABLE"

    # Redis (arq worker)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Auth
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CLIENT_ID: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com"
    STRIPE_CONNECT_BASE: str = "https://connect.stripe.com"
    STRIPE_TIMEOUT_SECONDS: float = 30.0
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Marketplace economics
    PLATFORM_COMMISSION_RATE: Decimal = Decimal("0.10")
    CASHBACK_RATE: Decimal = Decimal("0.01")

    # Payouts
    BASE_CURRENCY: str = "GBP"
    FX_USD_TO_BASE: Decimal = Decimal("0.79")
    FX_EUR_TO_BASE: Decimal = Decimal("0.86")

    # Reconciliation
    RECONCILE_AFTER_MINUTES: int = 15
    RECONCILE_BATCH_SIZE: int = 200

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @field_validator("PLATFORM_COMMISSION_RATE", "CASHBACK_RATE")
    @classmethod
    def check_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 1:
            raise ValueError("rate must be between 0 and 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
