"""GitLab Build Orchestrator - merge, staleness-check and build services on GitLab CI."""

__version__ = "0.1.0"

from .core.config import settings

__all__ = ["settings"]
