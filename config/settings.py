"""
Configuration module for the School Records service.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Record store
    database_url: str = "sqlite:///./school_records.db"

    # Asset store (photo bucket)
    asset_endpoint: Optional[str] = None
    asset_project_id: Optional[str] = None
    asset_bucket_id: Optional[str] = None
    asset_api_key: Optional[str] = None
    asset_timeout_seconds: float = 30.0

    # Administrator
    admin_email: str = ""

    # ID card composition
    google_api_key: Optional[str] = None
    id_card_model: str = "gemini-2.0-flash-exp"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    max_sessions: int = 1000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


settings = get_settings()
