"""Repository reference parser.

Turns a user-supplied repository URL into a :class:`RepositoryReference`.
An unsupported or malformed URL is a normal outcome, reported as ``None``
rather than an exception: callers display the bare reference and move on.
"""

from __future__ import annotations

import re
from urllib.parse import quote, urlsplit

from repo_metadata.domain.entities import Platform
from repo_metadata.domain.value_objects import RepositoryReference

# ── Constants ───────────────────────────────────────────────────────────────

_HOST_PREFIXES: dict[str, Platform] = {
    "https://github.com/": Platform.GITHUB,
    "https://gitlab.com/": Platform.GITLAB,
}

DEFAULT_API_BASES: dict[Platform, str] = {
    Platform.GITHUB: "https://api.github.com",
    Platform.GITLAB: "https://gitlab.com/api/v4",
}

_STRICT_PATTERNS: dict[Platform, re.Pattern[str]] = {
    Platform.GITHUB: re.compile(r"^https://github\.com/[\w\-.]+/[\w\-.]+$"),
    # At least two segments: owner/repo or group/subgroup/.../repo
    Platform.GITLAB: re.compile(r"^https://gitlab\.com/[\w\-.]+(?:/[\w\-.]+)+$"),
}


# ── Public API ──────────────────────────────────────────────────────────────


def detect_platform(url: str) -> Platform | None:
    """Return the hosting platform for *url*, or ``None`` if unsupported."""
    url = url.strip()
    for prefix, platform in _HOST_PREFIXES.items():
        if url.startswith(prefix):
            return platform
    return None


def parse_repository_url(url: str) -> RepositoryReference | None:
    """Parse *url* into a reference, or return ``None`` when it is malformed.

    GitHub URLs need exactly two path segments (``owner/name``).  GitLab URLs
    need at least two; the last one is the project name and everything before
    it is the (possibly nested) group path.
    """
    raw = url.strip()
    platform = detect_platform(raw)
    if platform is None:
        return None

    try:
        path = urlsplit(raw).path
    except ValueError:
        return None

    segments = _clean_path(path)
    if segments is None:
        return None

    if platform is Platform.GITHUB:
        if len(segments) != 2:
            return None
        owner, name = segments
    else:
        if len(segments) < 2:
            return None
        owner, name = "/".join(segments[:-1]), segments[-1]

    return RepositoryReference(platform=platform, owner=owner, name=name, raw_url=raw)


def validate_repository_url(url: str) -> bool:
    """Strict shape check: only word characters, dots and dashes in segments."""
    platform = detect_platform(url)
    if platform is None:
        return False
    return bool(_STRICT_PATTERNS[platform].match(url.strip()))


def build_api_endpoint(reference: RepositoryReference, api_base: str | None = None) -> str:
    """Return the primary metadata endpoint for *reference*.

    GitHub takes literal path segments.  GitLab addresses projects by their
    full path, percent-encoded into a single segment (``group%2Fsub%2Fproj``).
    """
    base = (api_base or DEFAULT_API_BASES[reference.platform]).rstrip("/")
    if reference.platform is Platform.GITHUB:
        return f"{base}/repos/{reference.owner}/{reference.name}"
    return f"{base}/projects/{quote(reference.full_name, safe='')}"


# ── Helpers ─────────────────────────────────────────────────────────────────


def _clean_path(path: str) -> list[str] | None:
    """Strip trailing slashes and ``.git``, then split into segments.

    Paths containing ``.`` or ``..`` segments are rejected.
    """
    path = path.rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    segments = [s for s in path.split("/") if s]
    if any(s in (".", "..") for s in segments):
        return None
    return segments or None
