"""Configuration management using Pydantic Settings"""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Persistence
    obligations_backend: Literal["sql", "rest"] = "sql"
    database_url: str = "sqlite:///./obligations.db"
    rest_backend_url: str = "http://localhost:54321/rest/v1"
    rest_backend_api_key: Optional[str] = None

    # Change notifications
    change_webhook_url: Optional[str] = None
    webhook_max_retries: int = 3
    webhook_backoff_base: float = 0.5  # Exponential backoff base in seconds

    # Service
    service_name: str = "obligations-gateway"
    log_level: str = "INFO"
    timezone: str = "America/Sao_Paulo"

    # HTTP Client
    http_timeout_seconds: float = 5.0


settings = Settings()
