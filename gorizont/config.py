from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://gorizont:gorizont_dev@db:5432/gorizont"

    # Redis (Celery broker)
    REDIS_URL: str = "redis://redis:6379/0"

    # Security
    SECRET_KEY: str = "dev-secret-key-not-for-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Checkout
    LOCAL_DELIVERY_CITY: str = "Sukhum"
    LOCAL_DELIVERY_PRICE: Decimal = Decimal("200.00")
    DEFAULT_DELIVERY_PRICE: Decimal = Decimal("400.00")

    # Disputes: hours without a status change before auto-escalation
    DISPUTE_RESPONSE_HOURS: int = 72
    DISPUTE_NEGOTIATION_HOURS: int = 168

    # Messaging
    MESSAGES_PAGE_LIMIT: int = 100

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
