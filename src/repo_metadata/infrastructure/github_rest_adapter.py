"""GitHub REST API adapter — implements the MetadataProvider port."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from repo_metadata.domain.entities import RepositoryMetadata
from repo_metadata.domain.value_objects import RepositoryReference
from repo_metadata.infrastructure.rest_adapter import RestProviderAdapter
from repo_metadata.services.normalizer import RawRepositoryFields, normalize
from repo_metadata.services.reference_parser import build_api_endpoint

logger = logging.getLogger(__name__)

_GITHUB_API = "https://api.github.com"


class _GitHubLicense(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    spdx_id: str | None = None


class GitHubRepoPayload(BaseModel):
    """Subset of ``GET /repos/{owner}/{repo}`` we rely on."""

    model_config = ConfigDict(extra="ignore")

    stargazers_count: int | None = None
    forks_count: int | None = None
    open_issues_count: int | None = None
    updated_at: str | None = None
    default_branch: str | None = None
    language: str | None = None
    description: str | None = None
    license: _GitHubLicense | None = None


class GitHubRestAdapter(RestProviderAdapter):
    """Concrete MetadataProvider backed by the GitHub v3 REST API."""

    platform_label = "GitHub"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: str = _GITHUB_API,
        user_agent: str = "repo-metadata/1.0",
    ) -> None:
        super().__init__(
            client,
            api_base,
            accept="application/vnd.github.v3+json",
            user_agent=user_agent,
        )

    async def fetch_metadata(self, reference: RepositoryReference) -> RepositoryMetadata:
        """GET /repos/{owner}/{repo} (+ latest release) → RepositoryMetadata."""
        endpoint = build_api_endpoint(reference, self._api_base)
        fetched_at = datetime.now(timezone.utc)
        logger.info("Fetching GitHub metadata for %s", reference.full_name)

        data = await self._primary_get(endpoint)
        payload = self._parse_payload(GitHubRepoPayload, data, reference)

        release = await self._enrich(f"{endpoint}/releases/latest", _tag_name)

        raw = RawRepositoryFields(
            stars=payload.stargazers_count,
            forks=payload.forks_count,
            open_issues=payload.open_issues_count,
            default_branch=payload.default_branch,
            last_updated=payload.updated_at,
            description=payload.description,
            language=payload.language,
            last_release=release.value,
            license=payload.license.name if payload.license else None,
        )
        return normalize(raw, fetched_at=fetched_at)


def _tag_name(data: Any) -> str | None:
    tag = data.get("tag_name") if isinstance(data, dict) else None
    return tag if isinstance(tag, str) else None
