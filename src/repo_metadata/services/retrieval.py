"""Retrieval orchestrator — the façade callers use to get repository metadata.

Consults the cache, dispatches to the provider client for the reference's
platform on a miss, retries transient failures with exponential backoff and
writes successful results back into the cache.  Concurrent misses for the
same repository share a single in-flight fetch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from repo_metadata.domain.entities import CacheStats, Platform, RepositoryMetadata
from repo_metadata.domain.exceptions import (
    RepoMetadataError,
    TransientFetchError,
    UnsupportedPlatformError,
)
from repo_metadata.domain.ports.metadata_provider import MetadataProvider
from repo_metadata.domain.value_objects import RepositoryReference
from repo_metadata.services.cache import CacheService
from repo_metadata.services.reference_parser import parse_repository_url

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0  # 5 minutes
DEFAULT_STALE_WINDOW = 60.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


def _is_retryable(exc: BaseException) -> bool:
    """Domain errors carry their own flag; any other ``Exception`` is retried."""
    if isinstance(exc, RepoMetadataError):
        return exc.retryable
    return isinstance(exc, Exception)


class RepositoryMetadataService:
    """Cached, retrying access to repository metadata.

    Parameters
    ----------
    providers:
        One provider client per supported platform.
    cache:
        The cache this service owns.  Injected so tests and the application
        wiring decide its size and durable tier.
    ttl:
        Seconds a fetched result stays fresh in the cache.
    max_attempts:
        Total provider attempts per fetch (first try included).
    base_delay:
        Backoff base in seconds; the pause after failed attempt *n*
        (0-based) is ``base_delay * 2 ** n``.
    stale_window:
        Seconds before expiry during which :meth:`fetch_with_revalidate`
        serves cached data but triggers a background refresh.
    deadline:
        Optional overall time limit in seconds for one fetch including all
        retries and backoff pauses.
    sleep:
        Awaitable sleep used between attempts.  Injected by tests.
    """

    def __init__(
        self,
        providers: Mapping[Platform, MetadataProvider],
        cache: CacheService[RepositoryMetadata],
        *,
        ttl: float = DEFAULT_TTL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        stale_window: float = DEFAULT_STALE_WINDOW,
        deadline: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._providers = dict(providers)
        self._cache = cache
        self._ttl = ttl
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._stale_window = stale_window
        self._deadline = deadline
        self._sleep = sleep
        self._inflight: dict[str, asyncio.Task[RepositoryMetadata]] = {}
        self._background: set[asyncio.Task[None]] = set()

    # ── Public entry points ─────────────────────────────────────────────

    async def fetch_repository_metadata(self, reference: RepositoryReference) -> RepositoryMetadata:
        """Return metadata from the cache, or fetch (with retries) and cache it."""
        cached = self._cache.get(reference.cache_key)
        if cached is not None:
            return cached
        return await self._load(reference)

    async def fetch_with_revalidate(self, reference: RepositoryReference) -> RepositoryMetadata:
        """Stale-while-revalidate read.

        Fresh cached data is returned as is.  Data close to expiry is returned
        immediately while a refresh runs in the background.  A miss blocks on
        a normal fetch.
        """
        result = self._cache.get_with_stale_check(reference.cache_key, self._stale_window)
        if result.data is None:
            return await self._load(reference)
        if result.should_revalidate:
            self._schedule_refresh(reference)
        return result.data

    async def fetch_by_url(self, url: str) -> RepositoryMetadata | None:
        """Parse *url* and fetch; unsupported URLs yield ``None``."""
        reference = parse_repository_url(url)
        if reference is None:
            logger.debug("Skipping unsupported repository URL %r", url)
            return None
        return await self.fetch_repository_metadata(reference)

    async def refresh(self, reference: RepositoryReference) -> RepositoryMetadata:
        """Drop any cached value and fetch again."""
        self._cache.invalidate(reference.cache_key)
        return await self._load(reference)

    def invalidate(self, reference: RepositoryReference) -> None:
        self._cache.invalidate(reference.cache_key)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()

    async def aclose(self) -> None:
        """Wait for background refreshes to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # ── Single-flight ───────────────────────────────────────────────────

    async def _load(self, reference: RepositoryReference) -> RepositoryMetadata:
        key = reference.cache_key
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(reference))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            logger.debug("Joining in-flight fetch for %s", reference.full_name)
        # One caller's cancellation must not cancel the shared fetch.
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[RepositoryMetadata]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _fetch_and_store(self, reference: RepositoryReference) -> RepositoryMetadata:
        if self._deadline is None:
            metadata = await self._fetch_with_retry(reference)
        else:
            try:
                metadata = await asyncio.wait_for(
                    self._fetch_with_retry(reference), timeout=self._deadline
                )
            except asyncio.TimeoutError as exc:
                raise TransientFetchError(
                    f"Gave up on {reference.full_name} after {self._deadline:.0f}s"
                ) from exc

        self._cache.set(reference.cache_key, metadata, self._ttl)
        return metadata

    # ── Retry loop ──────────────────────────────────────────────────────

    async def _fetch_with_retry(self, reference: RepositoryReference) -> RepositoryMetadata:
        provider = self._providers.get(reference.platform)
        if provider is None:
            raise UnsupportedPlatformError(f"Unsupported platform: {reference.platform.value}")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._base_delay),
            retry=retry_if_exception(_is_retryable),
            before_sleep=lambda state: self._log_retry(reference, state),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await provider.fetch_metadata(reference)
        except Exception as exc:
            logger.warning("Giving up on %s: %s", reference.full_name, exc)
            raise
        raise AssertionError("retry loop exited without a result")

    def _log_retry(self, reference: RepositoryReference, state: RetryCallState) -> None:
        logger.warning(
            "Attempt %d/%d for %s failed (%s); retrying in %.1fs",
            state.attempt_number,
            self._max_attempts,
            reference.full_name,
            state.outcome.exception() if state.outcome else None,
            state.next_action.sleep if state.next_action else 0.0,
        )

    # ── Background refresh ──────────────────────────────────────────────

    def _schedule_refresh(self, reference: RepositoryReference) -> None:
        if reference.cache_key in self._inflight:
            return
        task = asyncio.ensure_future(self._background_refresh(reference))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_refresh(self, reference: RepositoryReference) -> None:
        try:
            await self._load(reference)
        except Exception as exc:
            logger.warning("Background refresh of %s failed: %s", reference.full_name, exc)
