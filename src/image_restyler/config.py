from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    # Keys
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "api_key"),
    )

    # Models
    gemini_vision_model: str = "gemini-2.5-flash"
    gemini_image_model: str = "imagen-3.0-generate-002"

    # Uploads
    max_upload_bytes: int = 20 * 1024 * 1024

    # App
    log_level: str = "INFO"
    session_cookie_name: str = "restyler_session"
    session_ttl_seconds: int = 60 * 60
    max_sessions: int = 500


settings = Settings()
