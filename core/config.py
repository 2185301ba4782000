from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    DATABASE_URL: str = Field(..., description="Async SQLAlchemy connection string (postgresql+asyncpg://...)")

    # Auth
    SECRET_KEY: str = Field(..., description="HMAC key used to sign auth tokens")
    TOKEN_TTL_SECONDS: int = 86400  # 1 day

    # Question bank
    QUESTIONS_PATH: str = Field("data/questions.json", description="JSON file with the question bank")

    # Quiz Settings
    QUIZ_LIMIT: int = 20
    INITIAL_DIFFICULTY: int = 3
    MIN_DIFFICULTY: int = 1
    MAX_DIFFICULTY: int = 5
    DEFAULT_POINTS: int = 10
    GENERAL_CATEGORY: str = "general"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = Field("*", description="Comma separated list of allowed origins")

    # Environment
    ENV: str = "production"  # development, staging, production
    DEBUG: bool = False

    @property
    def cors_origins(self) -> List[str]:
        raw = (self.CORS_ORIGINS or "").strip()
        if not raw or raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]

settings = Settings()
