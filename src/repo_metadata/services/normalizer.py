"""Metadata normalizer — the single seam from provider data to the canonical shape.

Every provider client maps its own response schema onto
:class:`RawRepositoryFields` and hands it to :func:`normalize`, so the same
defaulting and truncation rules apply whatever platform produced the data.
Pure functions, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from repo_metadata.domain.entities import MAX_DESCRIPTION_LENGTH, RepositoryMetadata

ELLIPSIS = "..."
DEFAULT_BRANCH = "main"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class RawRepositoryFields:
    """Platform-neutral view of an upstream response; every field optional."""

    stars: int | None = None
    forks: int | None = None
    open_issues: int | None = None
    default_branch: str | None = None
    last_updated: str | None = None
    description: str | None = None
    language: str | None = None
    last_release: str | None = None
    license: str | None = None


def normalize(
    raw: RawRepositoryFields,
    primary_language: str | None = None,
    *,
    fetched_at: datetime | None = None,
) -> RepositoryMetadata:
    """Build :class:`RepositoryMetadata` from *raw*.

    *primary_language*, when given, overrides ``raw.language`` (GitLab derives
    it from a separate languages call).  A missing ``last_updated`` falls back
    to *fetched_at*, then to the Unix epoch.
    """
    language = primary_language if primary_language is not None else raw.language
    last_updated = raw.last_updated or (fetched_at or _EPOCH).isoformat()

    return RepositoryMetadata(
        stars=_count(raw.stars),
        forks=_count(raw.forks),
        open_issues=_count(raw.open_issues),
        default_branch=_optional_text(raw.default_branch) or DEFAULT_BRANCH,
        last_updated=last_updated,
        description=truncate_description(_optional_text(raw.description)),
        primary_language=_optional_text(language),
        last_release=_optional_text(raw.last_release),
        license=_optional_text(raw.license),
    )


def truncate_description(text: str | None) -> str | None:
    """Cut *text* to 497 characters plus ``...`` when it exceeds 500."""
    if text is None or len(text) <= MAX_DESCRIPTION_LENGTH:
        return text
    return text[: MAX_DESCRIPTION_LENGTH - len(ELLIPSIS)] + ELLIPSIS


# ── Helpers ─────────────────────────────────────────────────────────────────


def _count(value: int | None) -> int:
    if value is None:
        return 0
    return max(int(value), 0)


def _optional_text(value: str | None) -> str | None:
    """Collapse ``None``, blank strings and the literal ``"null"`` to absent."""
    if value is None:
        return None
    if not value.strip() or value == "null":
        return None
    return value
