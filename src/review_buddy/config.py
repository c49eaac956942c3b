"""Configuration management using pydantic-settings."""

import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Brand-specific values (tone, automation level, channel credentials) live in
    the database and are resolved per request, not here.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Review Buddy"
    DEBUG: bool = False
    APP_BASE_URL: str = ""  # Used to build deep links in notifications

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./review_buddy.db"

    # LLM Provider Selection
    LLM_PROVIDER: str = "gemini"  # 'gemini', 'claude', 'ollama', or empty for auto-select
    LLM_TIMEOUT: float = 60.0

    # Gemini (Google Generative Language API)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # Anthropic (Claude)
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"

    # Ollama (local LLM)
    OLLAMA_BASE_URL: str = "http://ollama:11434"
    OLLAMA_LLM_MODEL: str = "llama3.1:8b"

    # Kiyoh review platform
    KIYOH_BASE_URL: str = "https://www.kiyoh.com"
    KIYOH_DEFAULT_TENANT_ID: str = "98"
    KIYOH_TIMEOUT: float = 30.0

    # Notifications
    TWILIO_API_URL: str = "https://api.twilio.com/2010-04-01"
    NOTIFICATION_TIMEOUT: float = 15.0

    # System health alerting
    HEALTH_ALERT_ESCALATION_RATE: float = 30.0  # Percent of reviews escalated in a day
    HEALTH_ALERT_MIN_REVIEWS: int = 10  # Don't alert on tiny samples

    @model_validator(mode="after")
    def check_llm_settings(self) -> "Settings":
        """Warn about an LLM provider selected without credentials."""
        provider = self.LLM_PROVIDER.lower()
        if provider == "gemini" and not self.GEMINI_API_KEY:
            logging.debug(
                "GEMINI_API_KEY is not set; a brand-level Gemini key will be required"
            )
        if provider == "claude" and not self.ANTHROPIC_API_KEY:
            logging.warning("LLM_PROVIDER is 'claude' but ANTHROPIC_API_KEY is empty")
        return self


settings = Settings()
