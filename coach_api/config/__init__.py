"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
"""

from .log_setup import RequestContextFilter, configure_logging
from .settings import Settings, get_settings

__all__ = ["RequestContextFilter", "Settings", "configure_logging", "get_settings"]
