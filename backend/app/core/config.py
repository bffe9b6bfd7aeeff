"""
Application configuration settings.
Uses pydantic-settings for type-safe environment variable handling.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Barangay Records System"
    APP_ENV: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str
    SUPABASE_SERVICE_KEY: str

    # JWT Authentication
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # View synchronisation
    SYNC_VISIBLE_POLL_SECONDS: float = 15.0
    SYNC_HIDDEN_POLL_SECONDS: float = 60.0
    HTTP_TIMEOUT_SECONDS: float = 30.0
    PENDING_CACHE_TTL_SECONDS: int = 24 * 60 * 60

    # Notifications
    NOTIFICATION_PAGE_SIZE: int = 10
    NOTIFICATION_RETRY_ATTEMPTS: int = 3
    NOTIFICATION_RETRY_DELAY_SECONDS: float = 5.0

    # Local time used in user-facing messages
    LOCAL_TIMEZONE: str = "Asia/Manila"

    # Email (SendGrid)
    SENDGRID_API_KEY: str = ""
    FROM_EMAIL: str = "noreply@barangay.gov.ph"
    FROM_NAME: str = "Barangay Records System"
    SEND_OUTCOME_EMAILS: bool = False

    # Email (SMTP Alternative)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""

    # Frontend URL
    FRONTEND_URL: str = "http://localhost:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Allow extra fields in .env without validation errors


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache ensures settings are only loaded once.
    """
    return Settings()


# Export settings instance for convenience
settings = get_settings()
