"""Exceptions raised by the cache subsystem."""
import os
import platform
from pathlib import Path
from typing import Optional, Union


class CacheError(Exception):
    """Base exception for cache errors."""


class CacheInitializationError(CacheError):
    """
    The cache root or one of its required directories could not be created.

    Raised only at startup; the subsystem cannot run without durable storage.
    """

    def __init__(self, path: Union[str, Path], original_error: Optional[Exception] = None):
        platform_info = f"{platform.system()} {platform.machine()}".strip()
        super().__init__(
            f"Failed to create cache directory on {platform_info}. "
            f"Path: {os.fspath(path)}, Error: {original_error}. "
            "Check directory permissions and available disk space."
        )
        self.path = Path(path)
        self.original_error = original_error


class CorruptRecordError(CacheError):
    """A stored record exists but could not be parsed."""

    def __init__(self, location: str, original_error: Optional[Exception] = None):
        super().__init__(f"Unparseable cache record at {location}: {original_error}")
        self.location = location
        self.original_error = original_error


class LoaderTimeoutError(CacheError, TimeoutError):
    """A cache loader did not finish before its deadline."""

    def __init__(self, key: str, timeout: float):
        super().__init__(f"Loader for {key} timed out after {timeout}s")
        self.key = key
        self.timeout = timeout
