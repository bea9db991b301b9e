"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Literal
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App metadata
    APP_NAME: str = "SupplyScout"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./data/supplyscout.db"

    # LLM Provider Selection
    LLM_PROVIDER: Literal["openai", "lm_studio"] = "openai"

    # OpenAI-compatible endpoint (OpenAI, OpenRouter, Azure-compatible gateways)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_DEFAULT_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT: int = 60  # seconds

    # LM Studio Configuration (no native function calling)
    LM_STUDIO_BASE_URL: str = "http://localhost:1234/v1"
    LM_STUDIO_DEFAULT_MODEL: str = "qwen/qwen3-1.7b"
    LM_STUDIO_TIMEOUT: int = 30  # seconds

    # LLM Request Configuration
    LLM_MAX_RETRIES: int = 3
    LLM_RETRY_DELAY: float = 2  # seconds, base for exponential backoff
    LLM_DEFAULT_TEMPERATURE: float = 0.2
    LLM_DEFAULT_MAX_TOKENS: int = 1000
    LLM_SUMMARY_MAX_TOKENS: int = 1500

    # Conversation
    HISTORY_WINDOW: int = 10  # prior messages replayed to the model
    HISTORY_MAX_CHARS: int = 12000
    STREAM_PERSIST_EVERY: int = 5  # chunks between streaming buffer writes

    # Email provider (Resend)
    RESEND_API_KEY: str = ""
    RESEND_BASE_URL: str = "https://api.resend.com"
    EMAIL_FROM: str = "SupplyScout <procurement@supplyscout.dev>"
    EMAIL_TIMEOUT: int = 15  # seconds
    EMAIL_MAX_RETRIES: int = 2

    # Procurement tracking
    PROCUREMENT_TTL_DAYS: int = 7
    SWEEP_ENABLED: bool = True
    SWEEP_INTERVAL_MINUTES: int = 60
    CATALOG_PAGE_SIZE: int = 20

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"

    class Config:
        # Project root .env first, then backend/.env
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),
            str(Path(__file__).parent.parent.parent / ".env"),
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Singleton instance
settings = Settings()
