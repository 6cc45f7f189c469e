"""
Application configuration and settings.
Centralized configuration management using Pydantic Settings.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
        env_file=[".env", ".env.local"],  # .env.local overrides .env
    )

    # Application settings
    app_name: str = "Brainrack Chat Relay"
    environment: str = Field(default="local")
    debug: bool = Field(default=True)

    # CORS settings
    allowed_origins: Optional[List[str]] = None

    # Logging settings
    log_level: str = Field(default="INFO")
    enable_request_logging: bool = Field(default=True)

    # Upstream LLM provider (OpenAI-compatible chat completions)
    openrouter_api_key: str = Field(default="")
    upstream_base_url: str = Field(default="https://openrouter.ai/api/v1")
    default_model: str = Field(default="openai/gpt-3.5-turbo")
    upstream_referer: Optional[str] = None
    upstream_title: Optional[str] = "Brainrack AI"

    # Seconds; the idle timeout bounds the gap between two upstream reads
    upstream_connect_timeout: float = Field(default=10.0, gt=0)
    upstream_idle_timeout: float = Field(default=30.0, gt=0)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_local(self) -> bool:
        """Check if running in local development environment."""
        return self.environment == "local"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
