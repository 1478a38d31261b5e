"""FastAPI web application for docker_build_step.

This module provides the HTTP API that mirrors the core services.
All business logic is delegated to core modules in docker_build_step/.
"""

from web.app import app, create_app

__all__ = ["app", "create_app"]
