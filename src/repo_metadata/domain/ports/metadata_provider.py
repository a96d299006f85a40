"""Port: metadata provider — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol

from repo_metadata.domain.entities import RepositoryMetadata
from repo_metadata.domain.value_objects import RepositoryReference


class MetadataProvider(Protocol):
    """Abstract contract for one hosting platform's metadata API."""

    async def fetch_metadata(self, reference: RepositoryReference) -> RepositoryMetadata:
        """Return normalized metadata for *reference*.

        Raises ``RepositoryNotFoundError``, ``RateLimitExceededError`` or
        ``TransientFetchError`` when the primary request fails.  Optional
        enrichment requests never raise.
        """
        ...
