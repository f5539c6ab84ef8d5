"""Core configuration and settings."""

from .config import settings
from .exceptions import ConfigurationError, OrchestrationError
from .logging import setup_logging

__all__ = ["settings", "ConfigurationError", "OrchestrationError", "setup_logging"]
