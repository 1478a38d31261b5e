"""Health check endpoints."""

from fastapi import APIRouter

from docker_build_step import __version__

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@router.get("/")
def root() -> dict[str, str]:
    """Return API name and version."""
    return {"name": "Docker Build Step API", "version": __version__}
