"""
Current season/week tracking.

The oracle answers "what NFL season and week is it right now?" from an
upstream state source, memoizes the answer, and falls back to the last
known answer when the source fails.
"""
import time
from typing import Callable, Optional, Protocol

from loguru import logger

from .records import FreshnessState


class StateSource(Protocol):
    """Anything that can report the current NFL season and week."""

    async def get_nfl_state(self) -> Optional[FreshnessState]:
        ...


class FreshnessOracle:
    """
    Memoizing wrapper around a StateSource.

    Never raises for source failures: callers get the last known state,
    or None when nothing has ever been fetched.
    """

    def __init__(
        self,
        source: StateSource,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._state: Optional[FreshnessState] = None
        self._fetched_at: Optional[float] = None
        self.logger = logger.bind(component="freshness")

    @classmethod
    def from_settings(cls, settings, source: StateSource) -> "FreshnessOracle":
        return cls(source, ttl_seconds=settings.cache.state_ttl_seconds)

    @property
    def last_known_state(self) -> Optional[FreshnessState]:
        return self._state

    def _is_fresh(self) -> bool:
        if self._state is None or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.ttl_seconds

    async def get_current_state(self) -> Optional[FreshnessState]:
        """
        Get the current season and week.

        Returns:
            Memoized state if fetched within the TTL, otherwise a fresh
            fetch; on failure the last known state, or None
        """
        if self._is_fresh():
            return self._state

        try:
            state = await self.source.get_nfl_state()
        except Exception as e:
            if self._state is not None:
                self.logger.warning(
                    f"NFL state fetch failed, using last known "
                    f"{self._state.season} week {self._state.week}: {e}"
                )
            else:
                self.logger.warning(f"NFL state fetch failed and no state is known: {e}")
            return self._state

        if state is None:
            self.logger.warning("NFL state source returned nothing")
            return self._state

        self._state = state
        self._fetched_at = self._clock()
        self.logger.debug(f"NFL state refreshed: season {state.season}, week {state.week}")
        return state

    def invalidate(self) -> None:
        """Force the next call to refetch. The last known state is kept."""
        self._fetched_at = None
