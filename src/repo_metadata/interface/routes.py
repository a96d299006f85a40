"""API routes — thin controllers that delegate to the retrieval services."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from repo_metadata.domain.exceptions import InvalidRepositoryUrlError
from repo_metadata.domain.value_objects import RepositoryReference
from repo_metadata.interface.dependencies import get_batch_coordinator, get_service
from repo_metadata.interface.schemas import (
    BatchRequest,
    BatchResponse,
    CacheStatsResponse,
    MetadataResponse,
)
from repo_metadata.services.batch import BatchCoordinator
from repo_metadata.services.reference_parser import parse_repository_url
from repo_metadata.services.retrieval import RepositoryMetadataService

router = APIRouter()

_ERRORS = {
    422: {"description": "Unsupported or malformed repository URL"},
    404: {"description": "Repository not found or private"},
    429: {"description": "Upstream rate limit exceeded"},
    502: {"description": "Upstream API unavailable after retries"},
}


def _reference(url: str) -> RepositoryReference:
    reference = parse_repository_url(url)
    if reference is None:
        raise InvalidRepositoryUrlError(
            f"Unsupported repository URL: '{url}'. "
            "Expected https://github.com/<owner>/<repo> or https://gitlab.com/<group>/<project>"
        )
    return reference


@router.get("/metadata", response_model=MetadataResponse, responses=_ERRORS)
async def get_metadata(
    url: str = Query(..., min_length=1),
    service: RepositoryMetadataService = Depends(get_service),
) -> MetadataResponse:
    """Metadata for one repository; near-expiry cache hits refresh in the background."""
    metadata = await service.fetch_with_revalidate(_reference(url))
    return MetadataResponse.from_entity(metadata)


@router.post("/metadata/refresh", response_model=MetadataResponse, responses=_ERRORS)
async def refresh_metadata(
    url: str = Query(..., min_length=1),
    service: RepositoryMetadataService = Depends(get_service),
) -> MetadataResponse:
    """Bypass the cache and refetch one repository."""
    metadata = await service.refresh(_reference(url))
    return MetadataResponse.from_entity(metadata)


@router.post("/metadata/batch", response_model=BatchResponse)
async def batch_metadata(
    body: BatchRequest,
    coordinator: BatchCoordinator = Depends(get_batch_coordinator),
) -> BatchResponse:
    """Metadata for many repositories; failed or unsupported ones are ``null``."""
    results = await coordinator.fetch_all(body.urls)
    return BatchResponse(
        results={
            url: MetadataResponse.from_entity(m) if m is not None else None
            for url, m in results.items()
        }
    )


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(
    service: RepositoryMetadataService = Depends(get_service),
) -> CacheStatsResponse:
    return CacheStatsResponse.from_entity(service.cache_stats())


@router.delete("/cache", status_code=204)
async def clear_cache(
    service: RepositoryMetadataService = Depends(get_service),
) -> None:
    service.clear_cache()
