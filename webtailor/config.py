"""
Configuration module for webtailor.
Centralizes all configuration in one place.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Generation service (Gemini generateContent API)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_ENDPOINT: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_MODEL: str = "gemini-2.5-flash-lite"
    LLM_TIMEOUT: int = 60
    LLM_TEMPERATURE: float = 0.2
    LLM_MAX_TOKENS: int = 2000
    LLM_TOP_P: float = 0.95
    LLM_TOP_K: int = 40

    # Browser Configuration
    BROWSER_HEADLESS: bool = True
    BROWSER_TIMEOUT_MS: int = 30000

    # Rule cache
    RULES_PATH: str = "data/storage.json"
    MAX_RULES_PER_ORIGIN: int = 10
    RULE_MAX_AGE_DAYS: int = 30
    CONTEXT_CACHE_TTL_SECONDS: float = 15.0
    REAPPLY_DEBOUNCE_SECONDS: float = 2.5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"


# Global settings instance
settings = Settings()
