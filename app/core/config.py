from pydantic_settings import BaseSettings
from typing import List, Optional
from decimal import Decimal
from functools import lru_cache


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Affiliate Payout Engine"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Scheduler trigger (Authorization: Bearer <CRON_SECRET>)
    CRON_SECRET: Optional[str] = None

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_MAX_NETWORK_RETRIES: int = 2

    # Payouts
    PAYOUT_CURRENCY: str = "usd"
    DEFAULT_PLATFORM_FEE_RATE: Decimal = Decimal("20")
    TRANSFER_TIMEOUT_SECONDS: float = 30.0
    PAYOUT_LOCK_TTL_SECONDS: int = 15 * 60
    PAYOUT_RUN_HOUR: int = 6  # UTC

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
