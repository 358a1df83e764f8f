"""Application configuration with environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/mathtutor"

    # JWT Settings
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Application
    APP_NAME: str = "Math Tutor API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # LLM provider (any OpenAI-compatible chat completions endpoint)
    LLM_API_KEY: str = "your-llm-api-key-here"
    LLM_BASE_URL: str = "https://api.mistral.ai/v1"
    LLM_MODEL: str = "mistral-medium"
    CHAT_TEMPERATURE: float = 0.7
    QUIZ_TEMPERATURE: float = 0.3

    # Quiz generation
    QUIZ_QUESTION_COUNT: int = 10
    QUIZ_HISTORY_CHATS: int = 10
    TUTOR_LANGUAGE: str = "French"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Create global settings instance
settings = get_settings()
