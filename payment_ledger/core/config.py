from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Payment Transfer Ledger API"
    database_url: str = "sqlite:///payment_ledger.db"
    log_level: str = "INFO"
    lock_timeout_seconds: float = Field(default=5.0, gt=0)
    default_currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LEDGER_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
