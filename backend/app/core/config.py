"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "DayBalance Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://daybalance@localhost:5432/daybalance"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "daybalance"
    # Applied when a user's profile row is created on first access.
    default_wake_up_time: str = "07:00"
    default_bed_time: str = "23:00"
    default_energy_peak_time: str | None = "morning"
    default_sleep_hours: float = 8.0


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
