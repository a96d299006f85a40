"""Batch coordinator — fetch many repositories without tripping rate limits."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable

from repo_metadata.domain.entities import RepositoryMetadata
from repo_metadata.domain.value_objects import RepositoryReference
from repo_metadata.services.reference_parser import parse_repository_url
from repo_metadata.services.retrieval import RepositoryMetadataService

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 0.2


class BatchCoordinator:
    """Fans references out to the retrieval service in paced batches.

    Fetches inside one batch run concurrently; batches run one after another
    with *batch_delay* seconds between them.  One reference failing never
    affects the others: it simply maps to ``None``.
    """

    def __init__(
        self,
        service: RepositoryMetadataService,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._service = service
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._sleep = sleep

    async def fetch_all(
        self, references: Iterable[str | RepositoryReference]
    ) -> dict[str, RepositoryMetadata | None]:
        """Return ``{reference: metadata or None}`` covering every input.

        String references are keyed by the string as given; parsed references
        by their ``raw_url``.  Unsupported URLs map to ``None`` without a fetch.
        """
        results: dict[str, RepositoryMetadata | None] = {}
        pending: list[tuple[str, RepositoryReference]] = []

        for item in references:
            if isinstance(item, RepositoryReference):
                pending.append((item.raw_url, item))
                continue
            parsed = parse_repository_url(item)
            if parsed is None:
                logger.debug("Skipping unsupported repository URL %r", item)
                results[item] = None
            else:
                pending.append((item, parsed))

        for start in range(0, len(pending), self._batch_size):
            if start:
                await self._sleep(self._batch_delay)
            batch = pending[start : start + self._batch_size]
            outcomes = await asyncio.gather(*(self._fetch_one(ref) for _, ref in batch))
            for (key, _), metadata in zip(batch, outcomes):
                results[key] = metadata

        logger.info(
            "Fetched metadata for %d/%d repositories",
            sum(1 for m in results.values() if m is not None),
            len(results),
        )
        return results

    async def _fetch_one(self, reference: RepositoryReference) -> RepositoryMetadata | None:
        try:
            return await self._service.fetch_repository_metadata(reference)
        except Exception as exc:
            logger.warning("Failed to fetch metadata for %s: %s", reference.full_name, exc)
            return None
