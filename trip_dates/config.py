# trip_dates/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "dev"
    APP_NAME: str = "Trip Dates Scheduling Service"

    # DB URL – SQLite local by default
    DATABASE_URL: str = "sqlite:///./trip_dates.db"
    DB_ECHO: bool = False

    # Scheduling funnel knobs
    MAX_WINDOWS_PER_USER: int = 2
    MAX_WINDOW_DAYS: int = 14
    MAX_PROPOSED_WINDOWS: int = 3
    SIMILARITY_THRESHOLD: float = 0.6

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # OpenAI is only used for the advisory insight text.
    # This will happily read OPENAI_API_KEY or openai_api_key from the env.
    openai_api_key: Optional[str] = None
    enable_openai: bool = False  # gate so tests never call OpenAI by accident
    openai_model: str = "gpt-4.1-mini"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
