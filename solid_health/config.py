"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "solid-health"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Solid identity (optional; otherwise log in via POST /api/v1/sync/session) ---
    solid_web_id: str | None = None
    solid_access_token: str | None = None

    # --- Fitness provider ---
    provider: str = "google_fit"
    google_fit_access_token: str = ""

    # --- HTTP ---
    request_timeout_s: float = 30.0

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
