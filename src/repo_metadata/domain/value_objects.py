"""Value objects — immutable domain primitives."""

from __future__ import annotations

from dataclasses import dataclass

from repo_metadata.domain.entities import Platform


@dataclass(frozen=True, slots=True)
class RepositoryReference:
    """A parsed repository locator.

    *owner* may hold several ``/``-separated segments for GitLab nested
    groups (``group/subgroup``); *name* is always the final path segment.
    Instances come from
    :func:`repo_metadata.services.reference_parser.parse_repository_url`.
    """

    platform: Platform
    owner: str
    name: str
    raw_url: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def cache_key(self) -> str:
        """Deterministic composite key ``(platform, owner, name)``."""
        return f"repo-metadata:{self.platform.value}:{self.owner}/{self.name}"
