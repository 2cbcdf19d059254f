from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    env: str = Field(default="development", alias="APP_ENV")
    host: str = Field(default="0.0.0.0", alias="APP_HOST")
    port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="sqlite:///./data/issues.db", alias="DATABASE_URL")

    # Pre-submit duplicate check is off by default; /issues/duplicates stays available on demand.
    duplicate_check_enabled: bool = Field(default=False, alias="DUPLICATE_CHECK_ENABLED")
    duplicate_threshold: float = Field(default=0.4, ge=0.0, le=1.0, alias="DUPLICATE_SIMILARITY_THRESHOLD")
    duplicate_min_title_length: int = Field(default=5, ge=0, alias="DUPLICATE_MIN_TITLE_LENGTH")
    creation_timeout_sec: float = Field(default=10.0, gt=0, alias="CREATION_TIMEOUT_SEC")
    write_workers: int = Field(default=4, ge=1, alias="WRITE_WORKERS")

    allow_anonymous_writes: bool = Field(default=True, alias="ALLOW_ANONYMOUS_WRITES")
    anonymous_marker: str = Field(default="Anonymous", alias="ANONYMOUS_MARKER")


@lru_cache
def get_settings() -> AppConfig:
    return AppConfig()
