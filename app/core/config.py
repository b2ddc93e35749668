"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Appraisal Queue API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_BASE_URL: str = "http://localhost:8000"  # Base URL for file serving

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./appraisals.db"

    # Redis (only used by the "rq" scheduler backend)
    REDIS_URL: str = "redis://localhost:6379"

    # Supabase auth
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # Gemini
    GEMINI_API_KEY: str = ""
    GEMINI_VALUATION_MODEL: str = "gemini-3-pro-preview"
    # Image model used to re-render the item as a single canonical picture
    GEMINI_IMAGE_MODEL: str = "gemini-3-pro-image-preview"

    # Ingress - only images already uploaded to our public bucket are accepted
    TRUSTED_IMAGE_URL_PATTERN: str = r"^https://[a-z]+\.supabase\.co/storage/v1/object/public/"
    DEFAULT_CONDITION: str = "Good"
    IMAGE_FETCH_TIMEOUT: float = 30.0

    # Storage: supabase | gcs | s3 | local
    STORAGE_BACKEND: str = "supabase"
    STORAGE_BUCKET: str = "appraisal-images"
    S3_ENDPOINT: str = ""
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_REGION: str = "us-east-1"
    GCP_PROJECT_ID: str = ""
    LOCAL_STORAGE_PATH: str = "./uploads"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Scheduling: inprocess | rq
    SCHEDULER_BACKEND: str = "inprocess"
    MAX_CONCURRENT_JOBS: int = 4
    JOB_TIMEOUT_APPRAISAL: int = 300
    SHUTDOWN_GRACE_SECONDS: float = 30.0

    # Status polling
    STATUS_LOOKBACK_HOURS: int = 24
    NEWLY_COMPLETED_WINDOW_SECONDS: float = 5.0

    # Stuck-job recovery
    JOB_LEASE_SECONDS: int = 900
    REAPER_INTERVAL_SECONDS: float = 60.0
    REAPER_ENABLED: bool = True
    RESUBMIT_PENDING_ON_STARTUP: bool = True

    @field_validator(
        'GEMINI_API_KEY', 'SUPABASE_ANON_KEY', 'SUPABASE_SERVICE_ROLE_KEY', 'S3_SECRET_KEY',
        mode='before'
    )
    @classmethod
    def strip_api_keys(cls, v):
        """Strip whitespace and newlines from API keys loaded from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
