"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineFeed", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=8000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="pt-BR", alias="TMDB_LANGUAGE")
    tmdb_region: str = Field(default="BR", alias="TMDB_REGION")

    library_api_url: HttpUrl = Field(
        default="http://localhost:3000", alias="LIBRARY_API_URL"
    )

    search_debounce_seconds: float = Field(
        default=0.5, alias="SEARCH_DEBOUNCE_SECONDS", ge=0, le=10
    )
    fetch_timeout_seconds: float = Field(
        default=10.0, alias="FETCH_TIMEOUT_SECONDS", gt=0, le=120
    )
    feed_session_ttl_seconds: float = Field(
        default=1800.0, alias="FEED_SESSION_TTL_SECONDS", gt=0
    )
    max_feed_sessions: int = Field(default=200, alias="MAX_FEED_SESSIONS", ge=1)

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    @field_validator("tmdb_region", mode="before")
    @classmethod
    def _normalise_region(cls, value: object) -> object:
        """Watch providers and certifications are keyed by upper-case ISO codes."""

        if isinstance(value, str):
            cleaned = value.strip().upper()
            if len(cleaned) != 2 or not cleaned.isalpha():
                raise ValueError("TMDB_REGION must be a two-letter country code")
            return cleaned
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("tmdb_language", mode="before")
    @classmethod
    def _normalise_language(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or "en-US"
        return value

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _strip_blank_key(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
