"""
Centralized application configuration.

All settings are driven by environment variables with sensible defaults.
Uses Pydantic BaseSettings for validation and type coercion. Engine
constants (suggestion cap, scoring thresholds) are fixed in the engine
modules and are not configurable.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Application ---
    app_name: str = "LiveCoach"
    app_version: str = "0.1.0"
    environment: str = "development"  # development | staging | production
    debug: bool = True
    log_level: str = "INFO"  # DEBUG | INFO | WARNING | ERROR

    # --- Server ---
    host: str = "0.0.0.0"
    port: int = 8000

    # --- Coaching ---
    coaching_min_confidence: float = 0.6  # patterns below this are left out of coaching
    high_confidence_threshold: float = 0.8
    ws_poll_interval: float = 2.0  # seconds between WebSocket refresh checks

    # --- CORS ---
    allowed_origins: list[str] = ["*"]

    model_config = {
        "env_prefix": "LIVECOACH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache
def get_settings() -> Settings:
    """
    Return a cached Settings instance.

    Env vars are read once and the same Settings object is reused across
    the application lifetime.
    """
    return Settings()
