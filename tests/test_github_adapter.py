"""Tests for the GitHub REST adapter against a mocked transport."""

from datetime import datetime, timezone

import httpx
import pytest

from repo_metadata.domain.exceptions import (
    RateLimitExceededError,
    RepositoryNotFoundError,
    TransientFetchError,
)
from repo_metadata.infrastructure.github_rest_adapter import GitHubRestAdapter

REPO_PAYLOAD = {
    "name": "react",
    "full_name": "facebook/react",
    "description": "The library for web and native user interfaces.",
    "stargazers_count": 230000,
    "forks_count": 47000,
    "open_issues_count": 900,
    "updated_at": "2024-06-01T10:00:00Z",
    "default_branch": "main",
    "language": "JavaScript",
    "license": {"name": "MIT License", "spdx_id": "MIT"},
}


def _adapter(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubRestAdapter(client)


def _routes(routes):
    """Build a handler answering by request path; unknown paths get 404."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if isinstance(route, Exception):
            raise route
        return route

    handler.seen = seen
    return handler


async def test_maps_repository_payload(github_ref):
    handler = _routes(
        {
            "/repos/facebook/react": httpx.Response(200, json=REPO_PAYLOAD),
            "/repos/facebook/react/releases/latest": httpx.Response(
                200, json={"tag_name": "v18.3.1"}
            ),
        }
    )

    metadata = await _adapter(handler).fetch_metadata(github_ref)

    assert metadata.stars == 230000
    assert metadata.forks == 47000
    assert metadata.open_issues == 900
    assert metadata.primary_language == "JavaScript"
    assert metadata.last_updated == "2024-06-01T10:00:00Z"
    assert metadata.default_branch == "main"
    assert metadata.license == "MIT License"
    assert metadata.last_release == "v18.3.1"
    assert metadata.description.startswith("The library")


async def test_primary_call_precedes_release_call(github_ref):
    handler = _routes({"/repos/facebook/react": httpx.Response(200, json=REPO_PAYLOAD)})

    await _adapter(handler).fetch_metadata(github_ref)

    paths = [r.url.path for r in handler.seen]
    assert paths == ["/repos/facebook/react", "/repos/facebook/react/releases/latest"]
    assert handler.seen[0].headers["accept"] == "application/vnd.github.v3+json"
    assert handler.seen[0].headers["user-agent"] == "repo-metadata/1.0"


@pytest.mark.parametrize(
    "release",
    [
        httpx.Response(404, json={"message": "Not Found"}),
        httpx.Response(500),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json=["unexpected"]),
        httpx.ConnectError("boom"),
    ],
)
async def test_release_failures_are_swallowed(github_ref, release):
    handler = _routes(
        {
            "/repos/facebook/react": httpx.Response(200, json=REPO_PAYLOAD),
            "/repos/facebook/react/releases/latest": release,
        }
    )

    metadata = await _adapter(handler).fetch_metadata(github_ref)

    assert metadata.last_release is None
    assert metadata.stars == 230000


async def test_null_fields_are_normalized(github_ref):
    payload = {**REPO_PAYLOAD, "description": None, "language": None, "license": None}
    handler = _routes({"/repos/facebook/react": httpx.Response(200, json=payload)})

    metadata = await _adapter(handler).fetch_metadata(github_ref)

    assert metadata.description is None
    assert metadata.primary_language is None
    assert metadata.license is None


async def test_404_is_not_found(github_ref):
    handler = _routes({})

    with pytest.raises(RepositoryNotFoundError):
        await _adapter(handler).fetch_metadata(github_ref)


async def test_429_carries_reset_time(github_ref):
    handler = _routes(
        {
            "/repos/facebook/react": httpx.Response(
                429, headers={"X-RateLimit-Reset": "1717236000"}
            )
        }
    )

    with pytest.raises(RateLimitExceededError) as excinfo:
        await _adapter(handler).fetch_metadata(github_ref)

    assert excinfo.value.reset_at == datetime.fromtimestamp(1717236000, tz=timezone.utc)
    assert "Resets at 10:00:00 UTC" in str(excinfo.value)


async def test_429_without_hint(github_ref):
    handler = _routes({"/repos/facebook/react": httpx.Response(429)})

    with pytest.raises(RateLimitExceededError) as excinfo:
        await _adapter(handler).fetch_metadata(github_ref)

    assert excinfo.value.reset_at is None
    assert str(excinfo.value) == "Rate limit exceeded"


async def test_exhausted_quota_403_is_rate_limit(github_ref):
    handler = _routes(
        {
            "/repos/facebook/react": httpx.Response(
                403, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1717236000"}
            )
        }
    )

    with pytest.raises(RateLimitExceededError):
        await _adapter(handler).fetch_metadata(github_ref)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500),
        httpx.Response(502),
        httpx.Response(403),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"stargazers_count": "lots"}),
        httpx.Response(200, json=[1, 2, 3]),
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ],
)
async def test_other_failures_are_transient(github_ref, response):
    handler = _routes({"/repos/facebook/react": response})

    with pytest.raises(TransientFetchError):
        await _adapter(handler).fetch_metadata(github_ref)


async def test_missing_fields_default(github_ref):
    handler = _routes({"/repos/facebook/react": httpx.Response(200, json={})})

    metadata = await _adapter(handler).fetch_metadata(github_ref)

    assert metadata.stars == 0
    assert metadata.default_branch == "main"
    assert metadata.last_updated  # falls back to the fetch time
