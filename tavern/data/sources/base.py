"""
Resilience layer shared by upstream clients.

Every upstream request goes through BaseDataSource._call, which retries
transient failures with capped exponential backoff and feeds a circuit
breaker. Failures reach callers as DataSourceError, so an upstream outage can
be told apart from a bug.
"""
import asyncio
import random
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


# =============================================================================
# ERRORS
# =============================================================================
class DataSourceError(Exception):
    """An upstream call failed. retry_allowed marks failures worth retrying."""

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
    """Upstream answered 429. retry_after_seconds comes from Retry-After."""

    def __init__(self, source_name: str, retry_after_seconds: Optional[int] = None):
        super().__init__(f"{source_name} is rate limiting requests", source_name)
        self.retry_after_seconds = retry_after_seconds


class DataNotAvailableError(DataSourceError):
    """Requested resource does not exist upstream (unknown league, bad week)."""

    def __init__(self, source_name: str, message: str):
        super().__init__(message, source_name, retry_allowed=False)


# =============================================================================
# HEALTH
# =============================================================================
class DataSourceStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


@dataclass
class DataSourceHealth:
    """Snapshot reported by /api/health and the health_check job."""

    source_name: str
    status: DataSourceStatus
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["source"] = data.pop("source_name")
        data["error"] = data.pop("error_message")
        data["status"] = self.status.value
        for field in ("last_success", "last_failure"):
            if data[field] is not None:
                data[field] = data[field].isoformat()
        return data


# =============================================================================
# RETRY AND CIRCUIT BREAKER
# =============================================================================
@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    multiplier: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after a failed attempt (1-based)."""
        delay = min(self.base_delay_seconds * self.multiplier ** (attempt - 1), self.max_delay_seconds)
        return delay * random.uniform(0.5, 1.5) if self.jitter else delay


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout_seconds: int = 60
    half_open_max_calls: int = 3


class CircuitBreaker:
    """
    Stops calls to an upstream that keeps failing.

    After failure_threshold failures in a row the breaker opens and refuses
    calls. Once recovery_timeout_seconds pass it goes half-open and lets calls
    through; half_open_max_calls successes close it, one failure reopens it.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"

    def __init__(self, config: CircuitBreakerConfig, clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        self.state = self.CLOSED
        self.failures = 0
        self.half_open_successes = 0
        self.opened_at: Optional[datetime] = None

    def _cooled_down(self) -> bool:
        if self.opened_at is None:
            return True
        waited = self._clock() - self.opened_at
        return waited.total_seconds() >= self.config.recovery_timeout_seconds

    def allow(self) -> bool:
        if self.state == self.OPEN and self._cooled_down():
            self.state = self.HALF_OPEN
            self.half_open_successes = 0
        return self.state != self.OPEN

    def record_success(self) -> None:
        if self.state != self.HALF_OPEN:
            self.failures = 0
            return
        self.half_open_successes += 1
        if self.half_open_successes >= self.config.half_open_max_calls:
            self.reset()

    def record_failure(self) -> None:
        self.failures += 1
        tripped = self.failures >= self.config.failure_threshold
        if tripped or self.state == self.HALF_OPEN:
            self.state = self.OPEN
            self.opened_at = self._clock()


# =============================================================================
# SOURCES
# =============================================================================
class BaseDataSource:
    """
    Upstream client with retries, a circuit breaker and health tracking.

    Subclasses hand `_call` a zero-argument coroutine factory, which is called
    again for every attempt.
    """

    def __init__(
        self,
        source_name: str,
        enabled: bool = True,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None,
    ):
        self.source_name = source_name
        self.enabled = enabled
        self.retry_config = retry_config or RetryConfig()
        self.circuit_breaker = CircuitBreaker(circuit_breaker_config or CircuitBreakerConfig())
        initial = DataSourceStatus.HEALTHY if enabled else DataSourceStatus.DISABLED
        self._health = DataSourceHealth(source_name=source_name, status=initial)
        self.logger = logger.bind(source=source_name)

    @property
    def is_available(self) -> bool:
        return self.enabled and self.circuit_breaker.allow()

    async def _call(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """
        Run operation, retrying transient failures.

        Raises:
            DataSourceError: the source is disabled or its circuit is open,
                the failure was not retryable, or attempts ran out
        """
        if not self.is_available:
            reason = "disabled" if not self.enabled else f"circuit {self.circuit_breaker.state}"
            raise DataSourceError(
                f"{self.source_name} is not available ({reason})",
                self.source_name,
                retry_allowed=False,
            )

        attempts = self.retry_config.max_attempts
        started = datetime.now()
        error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            if attempt > 1:
                await asyncio.sleep(self._pause_before_retry(attempt - 1, error))
            try:
                result = await operation()
            except DataSourceError as e:
                error = e
                self.logger.warning(f"{description}: attempt {attempt} of {attempts} failed: {e}")
                if not e.retry_allowed:
                    self._record_failure(str(e))
                    raise
            except Exception as e:
                error = e
                self.logger.exception(f"{description}: unexpected error on attempt {attempt}")
            else:
                elapsed = datetime.now() - started
                self._record_success(elapsed.total_seconds() * 1000)
                return result

        self._record_failure(str(error) if error else "no attempts made")
        raise DataSourceError(
            f"{description} failed after {attempts} attempts",
            self.source_name,
            original_error=error,
            retry_allowed=False,
        )

    def _pause_before_retry(self, failed_attempt: int, error: Optional[Exception]) -> float:
        delay = self.retry_config.delay_for(failed_attempt)
        if isinstance(error, RateLimitError) and error.retry_after_seconds:
            return max(delay, float(error.retry_after_seconds))
        return delay

    def _record_success(self, latency_ms: float) -> None:
        recovering = self.circuit_breaker.state == CircuitBreaker.HALF_OPEN
        self.circuit_breaker.record_success()
        if recovering and self.circuit_breaker.state == CircuitBreaker.CLOSED:
            self.logger.info(f"{self.source_name} recovered, circuit closed")

        health = self._health
        health.status = DataSourceStatus.HEALTHY
        health.last_success = datetime.now()
        health.latency_ms = latency_ms
        health.consecutive_failures = 0
        health.error_message = None

    def _record_failure(self, error_message: str) -> None:
        self.circuit_breaker.record_failure()

        health = self._health
        health.last_failure = datetime.now()
        health.consecutive_failures += 1
        health.error_message = error_message

        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            health.status = DataSourceStatus.UNHEALTHY
            self.logger.error(
                f"{self.source_name} circuit open after {self.circuit_breaker.failures} failures"
            )
        elif health.consecutive_failures > 1:
            health.status = DataSourceStatus.DEGRADED

    def get_health(self) -> DataSourceHealth:
        return self._health

    def reset_circuit_breaker(self) -> None:
        self.circuit_breaker.reset()
        self._health.status = DataSourceStatus.HEALTHY
        self._health.consecutive_failures = 0
        self._health.error_message = None
        self.logger.info(f"{self.source_name} circuit reset by operator")


class CachedDataSource(BaseDataSource):
    """
    Source whose responses are reused for cache_ttl_seconds.

    Keys read like "rosters:<league>"; the part before the first colon picks
    the cache's data type.
    """

    def __init__(self, source_name: str, cache_ttl_seconds: int = 60, cache=None, **kwargs):
        super().__init__(source_name, **kwargs)
        self.cache_ttl_seconds = cache_ttl_seconds
        self._cache = cache

    @property
    def cache(self):
        return self._cache

    def set_cache(self, cache) -> None:
        self._cache = cache

    def _cache_key(self, key: str) -> str:
        return f"{self.source_name}:{key}"

    async def _cached_call(
        self,
        key: str,
        operation: Callable[[], Awaitable[Any]],
        use_cache: bool = True,
    ) -> Any:
        """Serve key from the cache; on a miss, or when use_cache is off, call upstream."""
        if self._cache is None or not use_cache:
            return await self._call(operation, key)

        return await self._cache.get_or_set(
            self._cache_key(key),
            lambda: self._call(operation, key),
            ttl_seconds=self.cache_ttl_seconds,
            data_type=key.partition(":")[0],
        )

    async def invalidate(self, key: str) -> None:
        if self._cache is None:
            return
        await self._cache.delete(self._cache_key(key))
        self.logger.debug(f"Dropped cached {key}")

    async def clear_all_cache(self) -> None:
        if self._cache is not None:
            await self._cache.clear_prefix(self.source_name)
