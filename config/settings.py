from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Core
    ENVIRONMENT: str = Field(default="production")
    FIRESTORE_PROJECT_ID: str = Field(default="")
    FIRESTORE_DATABASE: str = Field(default="")  # named database; empty = "(default)"
    LOG_LEVEL: str = Field(default="INFO")

    # Reconciliation
    SYNC_TIMEZONE: str = Field(default="UTC")  # IANA name; defines "today" for the daily marker
    NOTIFY_HORIZON_DAYS: int = Field(default=7)
    SYNC_STATE_BACKEND: str = Field(default="firestore")  # firestore | memory


settings = Settings()
