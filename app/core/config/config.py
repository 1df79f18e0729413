from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.enums.increment_mode import IncrementMode


class Settings(BaseSettings):
    """Конфигурация приложения из .env и другие настройки"""

    # Основные настройки
    app_name: str = "Vehicle Auctions API"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    debug: bool = True

    # Database
    database_url: str = "sqlite://db.sqlite3"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # CORS settings
    CORS_ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Bidding rules
    bid_increment_mode: IncrementMode = IncrementMode.flat
    bid_increment_flat: Decimal = Decimal("500")
    bid_increment_percent: Decimal = Decimal("5")
    auto_bid_step: Decimal = Decimal("100")
    auto_bid_max_rounds: int = 50
    stale_bid_retries: int = 2

    # Auction lifecycle
    closer_interval_seconds: int = 30
    countdown_interval_seconds: float = 1.0
    history_page_size: int = 50

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
