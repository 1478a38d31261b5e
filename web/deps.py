"""Request-scoped dependencies for FastAPI routes.

A database session is opened per request from the factory created in the
application lifespan. It is committed when the handler returns normally
and rolled back when the handler raises.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from docker_build_step.config import Settings, get_settings
from docker_build_step.hosts.resolver import HostRegistry


def get_session_factory(request: Request) -> sessionmaker[Session]:
    """Return the session factory stored on the application state."""
    factory: Any = request.app.state.session_factory
    return factory  # type: ignore[no-any-return]


def get_db(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> Generator[Session, None, None]:
    """Provide a database session for a request.

    Yields:
        Database session.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_registry(settings: Settings = Depends(get_settings)) -> HostRegistry:
    """Load the host registry declared in settings."""
    return HostRegistry.from_file(settings.hosts_file)
