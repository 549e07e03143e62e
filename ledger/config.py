"""Settings for the reporting engine and dashboard.

Values come from ``LEDGER_*`` environment variables or a ``.env`` file.
"""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    seed_path: str = Field(
        default="data/seed.json",
        description="JSON dataset loaded by the dashboard",
    )
    default_top_count: int = Field(
        default=5,
        ge=1,
        description="Number of categories in the top-spending report",
    )
    log_level: str = Field(default="INFO", description="Minimum log level")
    log_json: bool = Field(default=False, description="Render logs as JSON lines")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    return Settings()
