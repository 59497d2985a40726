"""
Runtime settings for the Unforgettable Coffee API.

Values come from the process environment, with an optional .env file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    host: str = "0.0.0.0"
    port: int = Field(8000, ge=1, le=65535)
    frontend_url: str = Field("*", description="Allowed CORS origin")
    environment: str = Field("development", description="development | production")
    data_dir: Path = Path("data")
    static_dir: Path = Path("public")
    report_timezone: str = "UTC"
    newsletter_case_insensitive: bool = False
    log_level: str = "info"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.frontend_url.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
