from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    NODE_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Either a full URL or the individual PostgreSQL parts below
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_DATABASE: str = "internship_logbook"
    POSTGRES_PORT: str = "5432"  # Default port for PostgreSQL

    # CORS configuration - comma-separated list of allowed origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8081,http://localhost:19006"

    # Gamification
    LEADERBOARD_PAGE_SIZE: int = 50
    LEADERBOARD_MAX_PAGE_SIZE: int = 100

    # Attachments
    ATTACHMENT_DIR: str = "uploads"
    MAX_ATTACHMENT_MB: int = 10
    MAX_PHOTOS_PER_LOG: int = 5
    MAX_DOCUMENTS_PER_LOG: int = 3

    @property
    def POSTGRES_URL(self):
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"
        )

    @property
    def SQLALCHEMY_URL(self) -> str:
        return self.DATABASE_URL or self.POSTGRES_URL

    model_config = SettingsConfigDict(env_file=".env.development", extra="ignore")


settings = Settings()
