"""Docker Build Step - build, tag, publish and clean container images.

This package provides the orchestration for a single pipeline step that
builds a container image from a build-context directory, tags it, pushes
the tags to a registry and removes the local image afterwards.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
