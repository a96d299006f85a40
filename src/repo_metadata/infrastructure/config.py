"""Application configuration — loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEADLINE_MARGIN_SECONDS = 5.0


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream APIs
    github_api_url: str = "https://api.github.com"
    gitlab_api_url: str = "https://gitlab.com/api/v4"
    request_timeout: float = Field(default=10.0, gt=0)
    user_agent: str = "repo-metadata/1.0"

    # Cache
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    cache_stale_window_seconds: float = Field(default=60.0, ge=0)
    cache_max_entries: int = Field(default=100, ge=1)
    cache_dir: str = ".repo-metadata-cache"  # empty string disables the durable tier

    # Retrieval
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    # Derived from the timeout and retry settings unless given explicitly;
    # pass None to disable.
    fetch_deadline_seconds: float | None = Field(default=None, gt=0)

    # Batching
    batch_size: int = Field(default=5, ge=1)
    batch_delay_seconds: float = Field(default=0.2, ge=0)

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @model_validator(mode="after")
    def _derive_fetch_deadline(self) -> Settings:
        """Default the deadline to the worst case of a fully retried fetch.

        Each attempt is a primary request followed by one round of
        enrichment requests, and the backoff pauses sum to
        ``base_delay * (2 ** (attempts - 1) - 1)``.
        """
        if "fetch_deadline_seconds" in self.model_fields_set:
            return self
        per_attempt = 2 * self.request_timeout
        backoff = self.retry_base_delay * (2 ** (self.retry_max_attempts - 1) - 1)
        self.fetch_deadline_seconds = (
            self.retry_max_attempts * per_attempt + backoff + DEADLINE_MARGIN_SECONDS
        )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()
