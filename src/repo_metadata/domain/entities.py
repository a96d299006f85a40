"""Domain entities — pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

MAX_DESCRIPTION_LENGTH = 500


class Platform(str, Enum):
    """Supported repository hosting platforms."""

    GITHUB = "GITHUB"
    GITLAB = "GITLAB"


@dataclass(frozen=True, slots=True)
class RepositoryMetadata:
    """Normalized, provider-independent repository metadata.

    Built only by :func:`repo_metadata.services.normalizer.normalize`.
    Instances are immutable, so values handed out by the cache can never be
    mutated by callers.
    """

    stars: int
    forks: int
    open_issues: int
    default_branch: str
    last_updated: str  # ISO-8601
    description: str | None = None
    primary_language: str | None = None
    last_release: str | None = None
    license: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> RepositoryMetadata:
        """Rebuild metadata from :meth:`to_dict` output.

        Raises ``ValueError`` when *data* does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        missing = {"stars", "forks", "open_issues", "default_branch", "last_updated"} - data.keys()
        if missing:
            raise ValueError(f"Missing metadata fields: {', '.join(sorted(missing))}")

        values = {k: v for k, v in data.items() if k in known}
        for name in ("stars", "forks", "open_issues"):
            value = values[name]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"Field {name!r} must be a non-negative integer")
        for name in ("default_branch", "last_updated"):
            if not isinstance(values[name], str):
                raise ValueError(f"Field {name!r} must be a string")
        for name in ("description", "primary_language", "last_release", "license"):
            value = values.get(name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"Field {name!r} must be a string or null")
        description = values.get("description")
        if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"Description longer than {MAX_DESCRIPTION_LENGTH} characters")
        return cls(**values)


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Process-lifetime counters of one cache instance."""

    entry_count: int
    hit_count: int
    miss_count: int

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total else 0.0


@dataclass(frozen=True, slots=True)
class StaleCheckResult(Generic[T]):
    """Outcome of a stale-while-revalidate cache lookup."""

    data: T | None
    is_stale: bool
    should_revalidate: bool
