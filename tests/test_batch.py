"""Tests for the batch coordinator."""

import asyncio

from conftest import make_metadata
from repo_metadata.domain.entities import Platform
from repo_metadata.domain.exceptions import RepositoryNotFoundError
from repo_metadata.services.batch import BatchCoordinator
from repo_metadata.services.cache import CacheService
from repo_metadata.services.reference_parser import parse_repository_url
from repo_metadata.services.retrieval import RepositoryMetadataService


class ByNameProvider:
    """Returns metadata per repository name; ``missing`` names raise 404."""

    def __init__(self, missing=()):
        self.missing = set(missing)
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def fetch_metadata(self, reference):
        self.calls.append(reference.name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if reference.name in self.missing:
                raise RepositoryNotFoundError("Repository not found or private")
            return make_metadata(description=reference.name)
        finally:
            self.active -= 1


def _coordinator(provider, clock, sleep, **kwargs):
    cache = CacheService(clock=clock)
    service = RepositoryMetadataService(
        {Platform.GITHUB: provider, Platform.GITLAB: provider},
        cache,
        sleep=sleep,
    )
    return BatchCoordinator(service, sleep=sleep, **kwargs)


async def test_partial_failure_does_not_abort_batch(clock, recording_sleep):
    urls = [
        "https://github.com/a/one",
        "https://github.com/a/two",
        "https://github.com/a/three",
    ]
    provider = ByNameProvider(missing={"two"})

    results = await _coordinator(provider, clock, recording_sleep).fetch_all(urls)

    assert len(results) == 3
    assert results[urls[0]].description == "one"
    assert results[urls[1]] is None
    assert results[urls[2]].description == "three"


async def test_unsupported_references_map_to_none(clock, recording_sleep):
    provider = ByNameProvider()
    urls = ["https://example.com/x/y", "https://gitlab.com/g/sub/p"]

    results = await _coordinator(provider, clock, recording_sleep).fetch_all(urls)

    assert results == {urls[0]: None, urls[1]: results[urls[1]]}
    assert results[urls[1]] is not None
    assert provider.calls == ["p"]


async def test_batches_are_paced_and_bounded(clock, recording_sleep):
    urls = [f"https://github.com/org/repo{i}" for i in range(12)]
    provider = ByNameProvider()

    results = await _coordinator(
        provider, clock, recording_sleep, batch_size=5, batch_delay=0.2
    ).fetch_all(urls)

    assert len(results) == 12
    assert all(m is not None for m in results.values())
    assert recording_sleep.delays == [0.2, 0.2]
    assert provider.max_active <= 5


async def test_accepts_parsed_references(clock, recording_sleep):
    ref = parse_repository_url("https://github.com/facebook/react")
    provider = ByNameProvider()

    results = await _coordinator(provider, clock, recording_sleep).fetch_all([ref])

    assert list(results) == ["https://github.com/facebook/react"]


async def test_empty_input(clock, recording_sleep):
    results = await _coordinator(ByNameProvider(), clock, recording_sleep).fetch_all([])

    assert results == {}
    assert recording_sleep.delays == []
