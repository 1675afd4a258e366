# backend/salon_booking/config.py

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    # Document store. Empty string = not configured.
    database_url: str = "sqlite+aiosqlite:///./data/salon.db"
    database_busy_timeout: float = 15.0
    transaction_max_attempts: int = 5

    # Distributed cache (optional)
    redis_url: Optional[str] = None
    redis_socket_timeout: float = 2.0

    cache_prefix: str = "salon"
    cache_memory_capacity: int = 1024
    cache_memory_ttl: int = 30
    cache_default_ttl: int = 300
    cache_compress_threshold: int = 1024
    cache_sweep_interval: int = 60
    cache_retry_interval: int = 60

    slots_cache_ttl: int = 300
    settings_cache_ttl: int = 3600

    # Salon local time
    timezone: str = "Asia/Tokyo"

    # Points
    birthday_bonus_points: int = 500
    points_earn_rate: float = 0.05

    # Notifications
    notification_timeout: float = 3.0
    operator_webhook_url: Optional[str] = None
    notifications_queue: str = "events:p2p"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite+aiosqlite:///./"):
            # Relative sqlite path → absolute, anchored at the repository root
            relative_path = url.replace("sqlite+aiosqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite+aiosqlite:///{absolute_path}"
        return url


settings = Settings()
