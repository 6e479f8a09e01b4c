"""Application settings and constants."""
from .settings import CacheSettings, Settings, SleeperSettings, get_settings

__all__ = ["Settings", "CacheSettings", "SleeperSettings", "get_settings"]
