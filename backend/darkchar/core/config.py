"""Configuration management using pydantic-settings."""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI settings (optional; can also be entered at runtime)
    openai_api_key: Optional[str] = None
    openai_model: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_timeout_seconds: float = 30.0
    openai_connect_timeout_seconds: float = 5.0
    openai_temperature: float = 0.8
    openai_max_output_tokens: int = 600

    # Provider used when a request does not name one ("openai" | "local")
    active_provider: str = "openai"

    # Application settings
    app_name: str = "dark-character-generator"

    # Server settings
    backend_host: str = "localhost"
    backend_port: int = 8000
    frontend_port: int = 3000


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
