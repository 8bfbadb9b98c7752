"""
core/config.py
──────────────
Application configuration loaded from environment variables via pydantic-settings.
The .env file in the backend root is parsed automatically.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central settings sourced from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Database ────────────────────────────────────────────────────────
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "weather-trip"
    STORE_TIMEOUT_SECONDS: float = 5.0

    # ── Search defaults ─────────────────────────────────────────────────
    SEARCH_RADIUS_KM: float = 5.0
    MAX_RESULTS: int = 20
    RANDOM_SAMPLE_SIZE: int = 10

    # ── External APIs ───────────────────────────────────────────────────
    KMA_SERVICE_KEY: str = ""
    USE_MOCK_WEATHER: bool = False
    WEATHER_TIMEOUT_SECONDS: float = 3.0

    # ── Rate Limiting ───────────────────────────────────────────────────
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ── CORS ────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origin_list(self) -> List[str]:
        """Parse the comma-separated CORS_ORIGINS string into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def store_timeout_ms(self) -> int:
        """Server-side ``maxTimeMS`` matching the client-side deadline."""
        return int(self.STORE_TIMEOUT_SECONDS * 1000)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance (created once per process)."""
    return Settings()
