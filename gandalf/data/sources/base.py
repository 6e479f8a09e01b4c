"""
Base class for upstream data source clients.

Wraps every upstream call with retry (exponential backoff with jitter), a
circuit breaker, and health tracking, so that concrete clients only deal
with HTTP and payload parsing.
"""
import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


class DataSourceStatus(str, Enum):
    """Health status of a data source."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


@dataclass
class DataSourceHealth:
    """Health information for a data source."""

    source_name: str
    status: DataSourceStatus
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None
    latency_ms: Optional[float] = None


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt after `attempt` (1-based)."""
        delay = self.initial_delay_seconds * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay_seconds)
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


class DataSourceError(Exception):
    """Base exception for data source errors."""

    def __init__(
        self,
        message: str,
        source_name: str,
        original_error: Optional[Exception] = None,
        retry_allowed: bool = True,
    ):
        super().__init__(message)
        self.source_name = source_name
        self.original_error = original_error
        self.retry_allowed = retry_allowed


class RateLimitError(DataSourceError):
    """Error when rate limit is exceeded."""

    def __init__(self, source_name: str, retry_after_seconds: Optional[int] = None):
        super().__init__(
            f"Rate limit exceeded for {source_name}",
            source_name,
            retry_allowed=True,
        )
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(DataSourceError):
    """Error when authentication fails."""

    def __init__(self, source_name: str, message: str = "Authentication failed"):
        super().__init__(message, source_name, retry_allowed=False)


class DataNotAvailableError(DataSourceError):
    """Error when requested data is not available."""

    def __init__(self, source_name: str, message: str):
        super().__init__(message, source_name, retry_allowed=False)


class CircuitBreaker:
    """
    Stops calling an upstream that keeps failing.

    closed -> open after `failure_threshold` consecutive failures;
    open -> half-open once `recovery_timeout_seconds` have passed;
    half-open -> closed after `half_open_max_calls` successes.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_seconds: int = 60,
        half_open_max_calls: int = 2,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout_seconds = recovery_timeout_seconds
        self.half_open_max_calls = half_open_max_calls
        self.state = "closed"
        self.failures = 0
        self.half_open_successes = 0
        self.opened_at: Optional[datetime] = None

    def allow(self) -> bool:
        if self.state != "open":
            return True
        if self.opened_at is None:
            return False
        elapsed = (datetime.now() - self.opened_at).total_seconds()
        if elapsed >= self.recovery_timeout_seconds:
            self.state = "half-open"
            self.half_open_successes = 0
            return True
        return False

    def record_success(self) -> bool:
        """Returns True when this success closed a half-open circuit."""
        if self.state == "half-open":
            self.half_open_successes += 1
            if self.half_open_successes >= self.half_open_max_calls:
                self.reset()
                return True
            return False
        self.failures = 0
        return False

    def record_failure(self) -> bool:
        """Returns True when this failure opened the circuit."""
        self.failures += 1
        if self.state == "half-open" or self.failures >= self.failure_threshold:
            was_open = self.state == "open"
            self.state = "open"
            self.opened_at = datetime.now()
            return not was_open
        return False

    def reset(self) -> None:
        self.state = "closed"
        self.failures = 0
        self.half_open_successes = 0
        self.opened_at = None


class BaseDataSource(ABC):
    """
    Abstract base class for upstream clients.

    Subclasses implement their endpoint methods on top of `call()`, which
    adds retries, the circuit breaker and health bookkeeping.
    """

    def __init__(
        self,
        source_name: str,
        enabled: bool = True,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.source_name = source_name
        self.enabled = enabled
        self.retry_config = retry_config or RetryConfig()
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._health = DataSourceHealth(
            source_name=source_name,
            status=DataSourceStatus.HEALTHY if enabled else DataSourceStatus.DISABLED,
        )
        self.logger = logger.bind(component=source_name)

    @property
    def is_available(self) -> bool:
        """Check if the data source is available for use."""
        return self.enabled and self.circuit_breaker.allow()

    @abstractmethod
    async def health_check(self) -> DataSourceHealth:
        """Lightweight upstream check."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None

    async def call(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Run an upstream operation with retries and the circuit breaker.

        Raises:
            DataSourceError: When the source is unavailable, an error is not
                retryable, or every attempt failed
        """
        if not self.is_available:
            raise DataSourceError(
                f"Data source {self.source_name} is not available",
                self.source_name,
                retry_allowed=False,
            )

        started = datetime.now()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retry_config.max_attempts + 1):
            try:
                result = await operation(*args, **kwargs)
                self._record_success((datetime.now() - started).total_seconds() * 1000)
                return result

            except DataSourceError as e:
                last_error = e
                self.logger.warning(f"Fetch error on attempt {attempt}: {e}")
                if not e.retry_allowed:
                    self._record_failure(str(e))
                    raise
                delay = self.retry_config.delay_for(attempt)
                if isinstance(e, RateLimitError) and e.retry_after_seconds:
                    delay = min(e.retry_after_seconds, self.retry_config.max_delay_seconds)

            except (asyncio.TimeoutError, OSError, ValueError) as e:
                last_error = e
                self.logger.warning(f"Unexpected error on attempt {attempt}: {e!r}")
                delay = self.retry_config.delay_for(attempt)

            if attempt < self.retry_config.max_attempts:
                self.logger.debug(f"Retrying in {delay:.2f} seconds...")
                await asyncio.sleep(delay)

        self._record_failure(str(last_error) if last_error else "Unknown error")
        raise DataSourceError(
            f"All {self.retry_config.max_attempts} attempts failed for {self.source_name}",
            self.source_name,
            original_error=last_error,
            retry_allowed=False,
        )

    def _record_success(self, latency_ms: float) -> None:
        self._health.last_success = datetime.now()
        self._health.latency_ms = latency_ms
        self._health.consecutive_failures = 0
        self._health.error_message = None
        self._health.status = DataSourceStatus.HEALTHY
        if self.circuit_breaker.record_success():
            self.logger.info("Circuit breaker closed after successful recovery")

    def _record_failure(self, error_message: str) -> None:
        self._health.last_failure = datetime.now()
        self._health.consecutive_failures += 1
        self._health.error_message = error_message

        if self.circuit_breaker.record_failure():
            self._health.status = DataSourceStatus.UNHEALTHY
            self.logger.error(
                f"Circuit breaker opened after {self.circuit_breaker.failures} failures"
            )
        elif self._health.consecutive_failures >= 2:
            self._health.status = DataSourceStatus.DEGRADED

    def get_health(self) -> DataSourceHealth:
        """Get current health status of the data source."""
        return self._health

    def reset_circuit_breaker(self) -> None:
        """Manually reset the circuit breaker."""
        self.circuit_breaker.reset()
        self._health.status = DataSourceStatus.HEALTHY
        self._health.consecutive_failures = 0
        self._health.error_message = None
        self.logger.info("Circuit breaker manually reset")
