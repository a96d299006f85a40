"""Shared HTTP plumbing for the provider adapters.

Two request channels:

* the *primary* request, whose failures are classified into the domain error
  taxonomy (404 → not found, 429 → rate limited, anything else → transient);
* *enrichment* requests, which never raise and report ``Enrichment(value, ok)``
  so optional fields can simply be omitted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generic, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from repo_metadata.domain.exceptions import (
    RateLimitExceededError,
    RepositoryNotFoundError,
    TransientFetchError,
)
from repo_metadata.domain.value_objects import RepositoryReference

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_RESET_HEADERS = ("x-ratelimit-reset", "ratelimit-reset")


@dataclass(frozen=True, slots=True)
class Enrichment(Generic[T]):
    """Result of a best-effort request: ``ok`` is False when the value is missing."""

    value: T | None = None
    ok: bool = False


class RestProviderAdapter:
    """Base class for JSON-over-HTTPS provider clients."""

    platform_label = "Upstream"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: str,
        *,
        accept: str = "application/json",
        user_agent: str = "repo-metadata/1.0",
    ) -> None:
        self._client = client
        self._api_base = api_base.rstrip("/")
        self._headers: dict[str, str] = {
            "Accept": accept,
            "User-Agent": user_agent,
        }

    # ── Primary channel ─────────────────────────────────────────────────

    async def _primary_get(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> Any:
        """GET *url* and return the decoded JSON body, translating failures."""
        try:
            resp = await self._client.get(url, headers=self._headers, params=params)
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"Network error fetching {url}: {exc}") from exc

        if resp.is_success:
            try:
                return resp.json()
            except ValueError as exc:
                raise TransientFetchError(
                    f"{self.platform_label} API returned invalid JSON for {url}"
                ) from exc

        if resp.status_code == 404:
            raise RepositoryNotFoundError("Repository not found or private")

        if resp.status_code == 429 or (
            resp.status_code == 403 and resp.headers.get("x-ratelimit-remaining") == "0"
        ):
            raise _rate_limit_error(resp)

        raise TransientFetchError(
            f"{self.platform_label} API error: {resp.status_code} {resp.reason_phrase}"
        )

    def _parse_payload(
        self,
        model: type[M],
        data: Any,
        reference: RepositoryReference,
    ) -> M:
        """Validate the primary body against the provider's schema."""
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise TransientFetchError(
                f"Unexpected {self.platform_label} response for {reference.full_name}: "
                f"{exc.error_count()} validation error(s)"
            ) from exc

    # ── Enrichment channel ──────────────────────────────────────────────

    async def _enrich(
        self,
        url: str,
        extract: Callable[[Any], T | None],
    ) -> Enrichment[T]:
        """Best-effort GET: any failure yields ``Enrichment(None, False)``."""
        try:
            resp = await self._client.get(url, headers=self._headers)
            if not resp.is_success:
                logger.debug("Optional request %s returned HTTP %d", url, resp.status_code)
                return Enrichment()
            value = extract(resp.json())
        except Exception:
            logger.debug("Optional request %s failed — omitting field", url, exc_info=True)
            return Enrichment()

        if value is None:
            return Enrichment()
        return Enrichment(value=value, ok=True)


# ── Helpers ─────────────────────────────────────────────────────────────────


def _rate_limit_error(resp: httpx.Response) -> RateLimitExceededError:
    reset_at = _reset_hint(resp.headers)
    if reset_at is None:
        return RateLimitExceededError("Rate limit exceeded")
    reset_str = reset_at.strftime("%H:%M:%S UTC")
    return RateLimitExceededError(f"Rate limit exceeded. Resets at {reset_str}", reset_at)


def _reset_hint(headers: httpx.Headers) -> datetime | None:
    """Read the reset time from epoch-seconds headers or ``Retry-After``."""
    for name in _RESET_HEADERS:
        raw = headers.get(name)
        if not raw:
            continue
        try:
            return datetime.fromtimestamp(int(raw), tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            continue

    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return datetime.now(timezone.utc) + timedelta(seconds=int(retry_after))
        except ValueError:
            pass
    return None
