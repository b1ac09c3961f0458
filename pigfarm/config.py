from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Default DB file: ./pig_farm.db (relative to current working directory)
    # Override with env var, e.g.
    #     DATABASE_URL=sqlite:////data/pig_farm.db
    database_url: str = "sqlite:///./pig_farm.db"
    log_level: str = "INFO"
    environment: str = "dev"
    # Seed value for the durable system_config row, not read after it exists
    activity_log_retention_days: int = 90
    default_page_size: int = 10
    max_page_size: int = 200

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("activity_log_retention_days")
    @classmethod
    def retention_in_range(cls, value: int) -> int:
        if not 1 <= value <= 365:
            raise ValueError("activity_log_retention_days must be between 1 and 365")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
