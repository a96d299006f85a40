"""Domain exception hierarchy.

Provider clients raise these; the retrieval service decides what to retry
using the ``retryable`` flag, and the interface layer maps each one to an
HTTP status code.
"""

from __future__ import annotations

from datetime import datetime


class RepoMetadataError(Exception):
    """Base exception for the entire application."""

    retryable: bool = False


# ── Input validation ────────────────────────────────────────────────────────


class InvalidRepositoryUrlError(RepoMetadataError):
    """The supplied URL is not a repository on a supported host."""


class UnsupportedPlatformError(RepoMetadataError):
    """No provider client is registered for the reference's platform."""


# ── Upstream API errors ─────────────────────────────────────────────────────


class RepositoryNotFoundError(RepoMetadataError):
    """The repository does not exist or is private (404)."""


class RateLimitExceededError(RepoMetadataError):
    """Upstream rate limit exceeded (429, or GitHub 403 with no quota left)."""

    def __init__(self, message: str, reset_at: datetime | None = None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class TransientFetchError(RepoMetadataError):
    """Any other upstream failure: non-2xx status, transport error or bad body."""

    retryable = True


# ── Cache errors ────────────────────────────────────────────────────────────


class CacheCorruptionError(RepoMetadataError):
    """A durable cache entry could not be decoded. Never leaves the cache."""
