"""Application settings parsed from environment variables and defaults."""

import json
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = ["http://localhost:8081", "http://127.0.0.1:8081"]
HISTORY_BACKENDS = {"memory", "redis"}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "Unified Search"
    environment: str = "development"
    api_prefix: str = "/api"

    log_level: str = "INFO"
    cors_origins: list[str] | str = Field(default_factory=lambda: DEFAULT_CORS_ORIGINS.copy())

    search_min_term_length: int = 2
    search_timeout_ms: int = 2_000
    max_search_timeout_ms: int = 20_000
    search_limit_per_service: int = 25

    history_limit: int = 12
    history_storage_key: str = "UnifiedSearch_history"
    history_backend: str = "memory"
    redis_url: str = "redis://redis:6379/0"

    http_timeout_seconds: float = 15.0
    http_retry_attempts: int = 3

    services: list[dict[str, Any]] | str = Field(default_factory=list)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        """Normalize CORS origins from JSON, CSV, or list inputs."""
        if isinstance(value, list):
            cleaned = [origin.strip() for origin in value if isinstance(origin, str) and origin.strip()]
            return cleaned or DEFAULT_CORS_ORIGINS.copy()
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return DEFAULT_CORS_ORIGINS.copy()
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                cleaned = [str(origin).strip() for origin in parsed if str(origin).strip()]
                if cleaned:
                    return cleaned
            origins = [origin.strip() for origin in stripped.split(",") if origin.strip()]
            if origins:
                return origins
        return DEFAULT_CORS_ORIGINS.copy()

    @field_validator("services", mode="before")
    @classmethod
    def _parse_services(cls, value: str | list[dict[str, Any]] | None) -> list[dict[str, Any]]:
        """Accept service definitions as a JSON array or an already-parsed list."""
        if value is None:
            return []
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return []
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValueError("SERVICES must be a JSON array of service definitions") from exc
            value = parsed
        if not isinstance(value, list):
            raise ValueError("SERVICES must be a JSON array of service definitions")
        return [item for item in value if isinstance(item, dict)]

    @field_validator("history_backend", mode="before")
    @classmethod
    def _normalize_history_backend(cls, value: str | None) -> str:
        """Lower-case the history backend name and reject unknown stores."""
        normalized = (value or "memory").strip().lower()
        if normalized not in HISTORY_BACKENDS:
            raise ValueError(f"HISTORY_BACKEND must be one of {sorted(HISTORY_BACKENDS)}")
        return normalized

    @field_validator("search_timeout_ms", "max_search_timeout_ms", "search_limit_per_service", "history_limit")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""
    return Settings()


settings = get_settings()
