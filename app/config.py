from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

# Backend root (works both from a source checkout and from an installed tree)
_BACKEND_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = f"sqlite:///{_BACKEND_ROOT / 'bid_tracker.db'}"

    # App
    APP_NAME: str = "Bid Award Tracker"
    DEBUG: bool = True
    API_PREFIX: str = "/api"

    # CORS — override with env var CORS_ORIGINS as a JSON array
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Holiday calendar (remote API, one request per calendar day)
    HOLIDAY_API_URL: str = "https://timor.tech/api/holiday/info/{date}"
    HOLIDAY_CACHE_SECONDS: int = 24 * 60 * 60
    HOLIDAY_API_TIMEOUT: float = 10.0

    # Storage quota used for the backup/storage health report
    STORAGE_QUOTA_BYTES: int = 50 * 1024 * 1024
    STORAGE_WARNING_RATIO: float = 0.80
    STORAGE_CRITICAL_RATIO: float = 0.95

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
