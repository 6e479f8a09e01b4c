"""Shared utilities."""
from .log_config import configure_from_settings, configure_logging

__all__ = ["configure_logging", "configure_from_settings"]
