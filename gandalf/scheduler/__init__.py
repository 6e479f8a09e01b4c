"""
Background job scheduling.

Provides the APScheduler-based sweep of expired cache entries.

Example:
    >>> from gandalf.scheduler import CacheSweeper
    >>>
    >>> sweeper = CacheSweeper(store, interval_seconds=300)
    >>> sweeper.start()
    >>> print(sweeper.get_status())
    >>> sweeper.stop()
"""

from .sweeper import SWEEP_JOB_ID, CacheSweeper

__all__ = [
    "CacheSweeper",
    "SWEEP_JOB_ID",
]
