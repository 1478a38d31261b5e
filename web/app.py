"""FastAPI application factory and main app.

This module creates the FastAPI application with all routers and
dependency injection configured. Routes are thin proxies to core APIs.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from docker_build_step import __version__
from docker_build_step.db import create_all_tables, get_engine, get_session_factory
from web.routers import config, health, jobs, runs, validation


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create history tables and the session factory on startup."""
    engine = get_engine()
    create_all_tables(engine)
    app.state.session_factory = get_session_factory(engine)
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application.
    """
    application = FastAPI(
        title="Docker Build Step API",
        description="HTTP API for validating tags, running build steps "
        "and inspecting job history",
        version=__version__,
        lifespan=lifespan,
    )

    application.include_router(health.router, tags=["health"])
    application.include_router(config.router, prefix="/config", tags=["config"])
    application.include_router(
        validation.router, prefix="/validation", tags=["validation"]
    )
    application.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
    application.include_router(runs.router, prefix="/runs", tags=["runs"])

    return application


app = create_app()
