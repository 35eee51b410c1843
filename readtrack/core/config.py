from functools import lru_cache
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    """
    Application settings.
    Values are loaded from the environment or a .env file.
    """

    # App
    APP_NAME: str = "Reading Tracker"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./readtrack.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_ECHO: bool = False

    # Quizzes
    QUIZ_LENGTH: int = 10
    ALLOW_QUIZ_RESUBMISSION: bool = False

    # Feeds
    NOTIFICATIONS_LIMIT: int = 50
    CLUB_MESSAGES_LIMIT: int = 100
    FEED_NOTIFICATIONS_LIMIT: int = 10
    REFRESHER_AFTER_DAYS: int = 30
    REFRESHER_LIMIT: int = 5

    # AI quiz generator (OpenAI-compatible chat completions)
    AI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    AI_API_KEY: Optional[str] = None
    AI_MODEL: str = "gpt-4o-mini"
    AI_TIMEOUT_SECONDS: float = 60.0

    # CORS
    CORS_ORIGINS: List[str] = []

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Returns cached settings instance (singleton)"""
    return Settings()
