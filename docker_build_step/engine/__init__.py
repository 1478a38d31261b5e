"""Container engine operations.

This module handles:
- Deriving connection parameters from a host binding
- Building an image once per tag
- Pushing tags to their registries
- Removing the locally built image
- Run log sinks
"""

from docker_build_step.engine.builder import ImageBuilder
from docker_build_step.engine.cleaner import ImageCleaner
from docker_build_step.engine.connection import Connection, ConnectionParams
from docker_build_step.engine.publisher import ImagePublisher

__all__ = [
    "Connection",
    "ConnectionParams",
    "ImageBuilder",
    "ImageCleaner",
    "ImagePublisher",
]
