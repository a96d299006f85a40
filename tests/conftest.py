"""Shared fixtures for the test-suite."""

from __future__ import annotations

import pytest

from repo_metadata.domain.entities import Platform, RepositoryMetadata
from repo_metadata.domain.value_objects import RepositoryReference


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async ``sleep`` replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_metadata(**overrides: object) -> RepositoryMetadata:
    values: dict[str, object] = {
        "stars": 10,
        "forks": 2,
        "open_issues": 1,
        "default_branch": "main",
        "last_updated": "2024-01-01T00:00:00Z",
        "description": "A repository",
        "primary_language": "Python",
    }
    values.update(overrides)
    return RepositoryMetadata(**values)  # type: ignore[arg-type]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def github_ref() -> RepositoryReference:
    return RepositoryReference(
        platform=Platform.GITHUB,
        owner="facebook",
        name="react",
        raw_url="https://github.com/facebook/react",
    )


@pytest.fixture
def gitlab_ref() -> RepositoryReference:
    return RepositoryReference(
        platform=Platform.GITLAB,
        owner="group/subgroup",
        name="project",
        raw_url="https://gitlab.com/group/subgroup/project",
    )
