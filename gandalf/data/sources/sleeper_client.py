"""
Sleeper API client for the current NFL season state.

Sleeper's public API needs no authentication. The only endpoint used here
is ``GET /state/nfl``, which reports the live season, week and season phase:

    {"week": 10, "season": "2024", "season_type": "regular",
     "league_season": "2024", "display_week": 10, ...}
"""
import ssl
from datetime import datetime
from typing import Any, Optional

import aiohttp
import certifi

from gandalf.data.cache.records import FreshnessState

from .base import (
    AuthenticationError,
    BaseDataSource,
    DataNotAvailableError,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RateLimitError,
    RetryConfig,
)


class SleeperClient(BaseDataSource):
    """
    Client for the Sleeper fantasy platform state endpoint.

    Satisfies the StateSource protocol used by FreshnessOracle.
    """

    DEFAULT_BASE_URL = "https://api.sleeper.app/v1"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        request_timeout_seconds: float = 10.0,
        enabled: bool = True,
        retry_config: Optional[RetryConfig] = None,
    ):
        super().__init__(source_name="sleeper", enabled=enabled, retry_config=retry_config)
        self.base_url = base_url.rstrip("/")
        self.request_timeout_seconds = request_timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings) -> "SleeperClient":
        return cls(
            base_url=settings.sleeper.base_url,
            request_timeout_seconds=settings.sleeper.request_timeout_seconds,
            enabled=settings.sleeper.enabled,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(ssl=ssl_context),
                headers={"User-Agent": "gandalf/1.0"},
            )
        return self._session

    async def _get_json(self, endpoint: str) -> Any:
        session = await self._get_session()
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        timeout = aiohttp.ClientTimeout(total=self.request_timeout_seconds)

        try:
            async with session.get(url, timeout=timeout) as response:
                if response.status == 200:
                    return await response.json(content_type=None)

                if response.status == 404:
                    raise DataNotAvailableError(self.source_name, f"{endpoint} not found")

                if response.status in (401, 403):
                    raise AuthenticationError(
                        self.source_name, f"Sleeper API rejected request: {response.status}"
                    )

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        self.source_name,
                        retry_after_seconds=int(retry_after)
                        if retry_after and retry_after.isdigit()
                        else None,
                    )

                raise DataSourceError(
                    f"Sleeper API returned {response.status} for {endpoint}",
                    self.source_name,
                    retry_allowed=response.status >= 500,
                )

        except aiohttp.ClientError as e:
            raise DataSourceError(
                f"Connection error: {e}",
                self.source_name,
                original_error=e,
                retry_allowed=True,
            )

    async def _fetch_nfl_state(self) -> Optional[FreshnessState]:
        payload = await self._get_json("state/nfl")
        if not payload:
            return None
        try:
            return FreshnessState.from_payload(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise DataSourceError(
                f"Malformed NFL state payload: {e}",
                self.source_name,
                original_error=e,
                retry_allowed=False,
            )

    async def get_nfl_state(self) -> Optional[FreshnessState]:
        """
        Get the current NFL season and week.

        Returns:
            FreshnessState, or None if Sleeper returned an empty body

        Raises:
            DataSourceError: On upstream failure after retries
        """
        if not self.enabled:
            return None
        self.logger.info("Fetching NFL state")
        return await self.call(self._fetch_nfl_state)

    async def health_check(self) -> DataSourceHealth:
        """Check if the Sleeper API is reachable."""
        if not self.enabled:
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.DISABLED,
                error_message="Sleeper integration disabled",
            )

        try:
            await self._get_json("state/nfl")
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.HEALTHY,
                last_success=datetime.now(),
            )
        except DataSourceError as e:
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.UNHEALTHY,
                error_message=str(e),
            )

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
