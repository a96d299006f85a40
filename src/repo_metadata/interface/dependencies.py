"""FastAPI dependency injection wiring.

Shared resources live in a :class:`Container` built at startup and stored on
``app.state``; route dependencies read it from the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from fastapi import Request

from repo_metadata.domain.entities import Platform, RepositoryMetadata
from repo_metadata.infrastructure.config import Settings
from repo_metadata.infrastructure.durable_stores import FileSystemStore
from repo_metadata.infrastructure.github_rest_adapter import GitHubRestAdapter
from repo_metadata.infrastructure.gitlab_rest_adapter import GitLabRestAdapter
from repo_metadata.services.batch import BatchCoordinator
from repo_metadata.services.cache import CacheService
from repo_metadata.services.retrieval import RepositoryMetadataService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Everything one application instance owns."""

    http_client: httpx.AsyncClient
    service: RepositoryMetadataService
    batch: BatchCoordinator

    async def close(self) -> None:
        await self.service.aclose()
        await self.http_client.aclose()


def build_container(settings: Settings) -> Container:
    """Construct the HTTP client, cache, providers and services."""
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout))

    store = FileSystemStore(settings.cache_dir) if settings.cache_dir else None
    if store is None:
        logger.info("Durable cache disabled; caching in memory only")
    cache: CacheService[RepositoryMetadata] = CacheService(
        max_size=settings.cache_max_entries,
        store=store,
        serializer=RepositoryMetadata.to_dict,
        deserializer=RepositoryMetadata.from_dict,
    )
    cache.purge_expired()

    providers = {
        Platform.GITHUB: GitHubRestAdapter(
            http_client, settings.github_api_url, user_agent=settings.user_agent
        ),
        Platform.GITLAB: GitLabRestAdapter(
            http_client, settings.gitlab_api_url, user_agent=settings.user_agent
        ),
    }
    service = RepositoryMetadataService(
        providers,
        cache,
        ttl=settings.cache_ttl_seconds,
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
        stale_window=settings.cache_stale_window_seconds,
        deadline=settings.fetch_deadline_seconds,
    )
    batch = BatchCoordinator(
        service,
        batch_size=settings.batch_size,
        batch_delay=settings.batch_delay_seconds,
    )
    return Container(http_client=http_client, service=service, batch=batch)


def _container(request: Request) -> Container:
    container: Container | None = getattr(request.app.state, "container", None)
    assert container is not None, "application lifespan did not run"
    return container


def get_service(request: Request) -> RepositoryMetadataService:
    return _container(request).service


def get_batch_coordinator(request: Request) -> BatchCoordinator:
    return _container(request).batch
