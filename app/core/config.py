"""Application configuration with environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./data/onboarding.db"

    # JWT Settings
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    # Application
    APP_NAME: str = "Onboarding Buddy API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # OpenAI
    OPENAI_API_KEY: str = "your-openai-api-key-here"
    OPENAI_MODEL: str = "gpt-4o-mini"  # or gpt-4, gpt-3.5-turbo
    OPENAI_TEMPERATURE: float = 0.7
    GENERATION_TIMEOUT_SECONDS: float = 60.0

    # Quizzes
    QUIZ_MAX_QUESTIONS: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
