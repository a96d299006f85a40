"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from repo_metadata.domain.entities import CacheStats, RepositoryMetadata


class BatchRequest(BaseModel):
    """Request body for ``POST /metadata/batch``."""

    urls: list[str] = Field(max_length=200)

    @field_validator("urls")
    @classmethod
    def _strip(cls, v: list[str]) -> list[str]:
        return [u.strip() for u in v if u.strip()]


class MetadataResponse(BaseModel):
    """Normalized metadata for one repository."""

    stars: int
    forks: int
    open_issues: int
    default_branch: str
    last_updated: str
    description: str | None = None
    primary_language: str | None = None
    last_release: str | None = None
    license: str | None = None

    @classmethod
    def from_entity(cls, metadata: RepositoryMetadata) -> MetadataResponse:
        return cls(**metadata.to_dict())


class BatchResponse(BaseModel):
    """Successful response from ``POST /metadata/batch``; failures are ``null``."""

    results: dict[str, MetadataResponse | None]


class CacheStatsResponse(BaseModel):
    entry_count: int
    hit_count: int
    miss_count: int
    hit_rate: float

    @classmethod
    def from_entity(cls, stats: CacheStats) -> CacheStatsResponse:
        return cls(
            entry_count=stats.entry_count,
            hit_count=stats.hit_count,
            miss_count=stats.miss_count,
            hit_rate=stats.hit_rate,
        )


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str
