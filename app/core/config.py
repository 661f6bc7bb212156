"""Application configuration using Pydantic settings."""
import os
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Literal, Optional


def _default_cache_enabled() -> bool:
    """In prod default to True when CACHE_ENABLED not set; in dev default False."""
    if os.getenv("CACHE_ENABLED") is not None:
        return os.getenv("CACHE_ENABLED", "").lower() in ("1", "true")
    return os.getenv("APP_ENV", "dev").lower() == "prod"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment: dev (SQLite, relaxed) vs prod (PostgreSQL, strict)
    app_env: Literal["dev", "prod"] = Field(default="dev", description="APP_ENV: dev or prod")

    # API Keys
    gemini_api_key: Optional[str] = None  # Required for the assistant; required in prod (validated at startup)

    # Database
    database_url: str = "sqlite:///./data/parksarthi.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Cache (assistant replies). Prod defaults True when CACHE_ENABLED not set.
    cache_enabled: bool = Field(default_factory=_default_cache_enabled, description="CACHE_ENABLED")

    # Application
    app_name: str = "Park Sarthi API"
    app_version: str = "1.0.0"
    debug: bool = False

    # LLM Settings
    llm_model: str = "gemini-2.5-flash"
    llm_max_tokens: int = 512
    llm_temperature: float = 0.6
    llm_timeout_seconds: int = 20
    llm_cache_ttl: int = 3600  # 1 hour

    # Assistant chat sessions
    chat_max_turns: int = 20  # Turns kept per session after every exchange
    chat_context_turns: int = 6  # Turns sent to the model as context
    chat_session_ttl_seconds: int = 86400  # 24 hours idle
    chat_sweep_interval_seconds: int = 3600  # Hourly eviction sweep
    chat_fallback_reply: str = (
        "I'm sorry, I'm having trouble connecting right now. Please try again in a moment "
        "or contact our support team at support@myparkplus.com."
    )

    # Wallet
    wallet_history_limit: int = 50

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore"  # Ignore extra environment variables
    }


settings = Settings()
