"""
Configuration management for the social service
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Service configuration loaded from environment variables"""

    # Server Configuration
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "./logs"

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./app.db"

    # Auth Configuration
    SECRET_KEY: str = "change-this-secret-in-prod"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24

    # Email Configuration (SMTP_HOST unset means links are only logged)
    FRONTEND_URL: str = "http://localhost:3000"
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM: str = "no-reply@modubook.local"
    SMTP_FROM_NAME: str = "Modubook"

    # Upload Configuration
    UPLOAD_DIR: str = "./uploads"
    MAX_IMAGE_SIZE_BYTES: int = 5 * 1024 * 1024
    MAX_IMAGES_PER_POST: int = 5

    # Book Search (Aladin Open API)
    ALADIN_API_KEY: str = "ttbkey1"
    ALADIN_API_URL: str = "http://www.aladin.co.kr/ttb/api/ItemSearch.aspx"
    BOOK_SEARCH_TIMEOUT_SECONDS: float = 5.0

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    SIGNUP_RATE_LIMIT: str = "5 per 15 minutes"
    CHECK_RATE_LIMIT: str = "30 per minute"
    POSTS_RATE_LIMIT: str = "100 per 15 minutes"

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
