"""GitLab REST API adapter — implements the MetadataProvider port."""

from __future__ import annotations

import asyncio
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

_GITLAB_API = "https://gitlab.com/api/v4"


class _GitLabLicense(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    key: str | None = None


class GitLabProjectPayload(BaseModel):
    """Subset of ``GET /projects/:id`` we rely on."""

    model_config = ConfigDict(extra="ignore")

    star_count: int | None = None
    forks_count: int | None = None
    open_issues_count: int | None = None
    last_activity_at: str | None = None
    default_branch: str | None = None
    description: str | None = None
    license: _GitLabLicense | None = None


class GitLabRestAdapter(RestProviderAdapter):
    """Concrete MetadataProvider backed by the GitLab v4 REST API.

    Project paths (including nested groups) are sent percent-encoded as a
    single path segment.  The primary language comes from the languages
    endpoint, which reports percentages.
    """

    platform_label = "GitLab"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: str = _GITLAB_API,
        user_agent: str = "repo-metadata/1.0",
    ) -> None:
        super().__init__(client, api_base, user_agent=user_agent)

    async def fetch_metadata(self, reference: RepositoryReference) -> RepositoryMetadata:
        """GET /projects/{path} (+ languages, releases) → RepositoryMetadata."""
        endpoint = build_api_endpoint(reference, self._api_base)
        fetched_at = datetime.now(timezone.utc)
        logger.info("Fetching GitLab metadata for %s", reference.full_name)

        data = await self._primary_get(endpoint, params={"license": "true"})
        payload = self._parse_payload(GitLabProjectPayload, data, reference)

        language, release = await asyncio.gather(
            self._enrich(f"{endpoint}/languages", _top_language),
            self._enrich(f"{endpoint}/releases", _first_tag_name),
        )

        raw = RawRepositoryFields(
            stars=payload.star_count,
            forks=payload.forks_count,
            open_issues=payload.open_issues_count,
            default_branch=payload.default_branch,
            last_updated=payload.last_activity_at,
            description=payload.description,
            last_release=release.value,
            license=payload.license.name if payload.license else None,
        )
        return normalize(raw, language.value, fetched_at=fetched_at)


def _top_language(data: Any) -> str | None:
    """Pick the language with the highest percentage."""
    if not isinstance(data, dict) or not data:
        return None
    return max(data, key=lambda lang: float(data[lang]))


def _first_tag_name(data: Any) -> str | None:
    """Releases are returned newest first."""
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None
    tag = data[0].get("tag_name")
    return tag if isinstance(tag, str) else None
