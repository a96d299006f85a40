"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from repo_metadata.infrastructure.config import Settings, get_settings
from repo_metadata.interface.dependencies import build_container
from repo_metadata.interface.error_handlers import register_error_handlers
from repo_metadata.interface.routes import router


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and wire the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage startup / shutdown of shared resources."""
        app.state.container = build_container(settings)
        yield
        await app.state.container.close()

    app = FastAPI(
        title="Repository Metadata",
        version="1.0.0",
        description=(
            "Resolves GitHub and GitLab repository URLs to normalized metadata "
            "(stars, forks, language, last activity, release, license) with "
            "caching, retries and stale-while-revalidate reads."
        ),
        lifespan=_lifespan,
    )

    register_error_handlers(app)
    app.include_router(router)

    # ── Health check (simple liveness probe) ────────────────────────────

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
