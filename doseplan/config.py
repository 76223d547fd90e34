from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./doseplan.db"

    # Calendar-day reference frame: "utc" or "local"
    calendar_frame: str = "utc"
    local_timezone: str = "America/New_York"  # Only used when calendar_frame is "local"

    # Regeneration
    regeneration_horizon_days: int = 365
    upsert_chunk_size: int = 1000  # Rows per upsert batch


@lru_cache
def get_settings() -> Settings:
    return Settings()
