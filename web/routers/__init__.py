"""Router modules for FastAPI web API."""

from web.routers import config, health, jobs, runs, validation

__all__ = ["config", "health", "jobs", "runs", "validation"]
