"""
Application configuration using Pydantic Settings.

This module manages all configuration from environment variables.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "LiveWMS Sample Exchange API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Spreadsheet import/export for live-commerce sample inventory"
    API_PREFIX: str = "/api"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    RELOAD: bool = False

    # Upload Configuration
    MAX_FILE_SIZE_MB: int = 20
    ALLOWED_EXTENSIONS: List[str] = [".xlsx", ".xlsm"]

    # Spreadsheet Exchange Settings
    EXPORT_BASENAME: str = "LiveWMS_Export"
    TEMPLATE_FILENAME: str = "样品导入模板.xlsx"
    DEFAULT_IMAGE_URL: str = "https://picsum.photos/200/200"
    IMAGE_FETCH_TIMEOUT: float = 10.0
    IMAGE_FETCH_WORKERS: int = 8
    MAX_IMAGE_SIZE_MB: int = 5

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # Set to also log to a file
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Create global settings instance
settings = get_settings()
