# portfolio_tracker/services/prices/base.py
"""
Abstract interface for current-price providers.

Every provider exposes the same capability set:
- get_current_price(request) -> PriceData
- get_batch_prices(requests, on_result=None) -> list[PriceData]
- health_check() -> bool
- get_config() -> ProviderConfig

Providers report failures by raising the market data exceptions from
portfolio_tracker.services.exceptions; PriceService turns those into
PriceErrorCode values and falls back to the next provider.

Resilience (shared by all providers, implemented once here):
- Client-side rate limit (limits, moving window) -> RateLimitError
- Circuit breaker per provider; an open circuit fails the health check
- Exponential-backoff retry (tenacity) for ProviderUnavailableError

Rate limits are deliberately NOT retried: the price service should move
on to the next provider instead of waiting for the window to reset.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from portfolio_tracker.services.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from portfolio_tracker.services.exceptions import (
    FXConversionError,
    InvalidSymbolError,
    MarketDataError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from portfolio_tracker.services.prices.types import (
    PriceData,
    PriceRequest,
    ProviderConfig,
    RateLimitConfig,
)

logger = logging.getLogger(__name__)

# Type variable for generic return type in retry method
T = TypeVar('T')


class PriceProvider(ABC):
    """
    Abstract base class for price providers.

    Subclasses implement `name` and `_fetch_current_price`; everything
    else has a working default.

    Retry Behavior:
        `_execute_with_retry` retries ProviderUnavailableError with
        exponential backoff. Subclasses can tune it through class attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)

    Non-Retryable Exceptions:
        - TickerNotFoundError / InvalidSymbolError: Permanent for this request
        - RateLimitError: Handled by falling back to another provider
    """

    # =========================================================================
    # RETRY CONFIGURATION (can be overridden by subclasses)
    # =========================================================================

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    # =========================================================================
    # PROVIDER DEFAULTS (can be overridden by subclasses)
    # =========================================================================

    DEFAULT_PRIORITY: int = 100
    DEFAULT_RATE_LIMIT: RateLimitConfig | None = None

    def __init__(
            self,
            priority: int | None = None,
            rate_limit: RateLimitConfig | str | None = None,
            circuit_breaker: CircuitBreaker | None = None,
            enabled: bool = True,
    ) -> None:
        """
        Args:
            priority: Fallback position, lower is tried first
            rate_limit: Client-side budget, a RateLimitConfig or limits
                notation such as "100/minute" (default: DEFAULT_RATE_LIMIT)
            circuit_breaker: Breaker guarding this provider (default: a new one)
            enabled: Disabled providers always fail their health check
        """
        self._priority = self.DEFAULT_PRIORITY if priority is None else priority
        self._enabled = enabled

        if isinstance(rate_limit, str):
            rate_limit = RateLimitConfig.parse(rate_limit)
        self._rate_limit = rate_limit if rate_limit is not None else self.DEFAULT_RATE_LIMIT
        self._limiter = MovingWindowRateLimiter(MemoryStorage())

        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name=self.name,
            excluded_exceptions=(TickerNotFoundError, InvalidSymbolError, FXConversionError),
        )

    # =========================================================================
    # ABSTRACT PROPERTIES AND METHODS
    # =========================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this provider.

        Used for logging, error messages and config lookups.
        """
        pass

    @abstractmethod
    def _fetch_current_price(self, request: PriceRequest) -> PriceData:
        """
        Fetch one quote from the data source.

        Called through the rate limiter, circuit breaker and retry wrapper.
        request.currency is always set.

        Raises:
            TickerNotFoundError: The source has no price for the identifier
            InvalidSymbolError: The identifier is malformed for this source
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: The source throttled us
        """
        pass

    # =========================================================================
    # PUBLIC INTERFACE
    # =========================================================================

    @property
    def priority(self) -> int:
        return self._priority

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def get_current_price(self, request: PriceRequest) -> PriceData:
        """
        Fetch the current price for one asset.

        Raises:
            RateLimitError: Client-side budget exhausted
            CircuitBreakerOpen: Provider is being skipped after repeated failures
            MarketDataError: Whatever the data source reported
        """
        self._check_rate_limit()
        with self._circuit_breaker:
            return self._execute_with_retry(self._fetch_current_price, request)

    def get_batch_prices(
            self,
            requests: list[PriceRequest],
            on_result: Callable[[PriceData], None] | None = None,
    ) -> list[PriceData]:
        """
        Fetch prices for multiple assets.

        Default implementation calls get_current_price() for each request.
        Identifiers the provider can't price are left out of the result.
        Once the provider is throttled or its circuit opens, the remaining
        requests are skipped.

        Args:
            requests: What to price
            on_result: Called with each quote as soon as it is fetched.
                An exception raised by the callback ends the batch.
        """
        results: list[PriceData] = []

        for request in requests:
            try:
                data = self.get_current_price(request)
            except (RateLimitError, CircuitBreakerOpen) as e:
                logger.warning(
                    f"{self.name}: stopping batch after {len(results)}/{len(requests)}: {e}"
                )
                break
            except (MarketDataError, FXConversionError) as e:
                logger.debug(f"{self.name}: no price for {request.identifier}: {e}")
                continue

            results.append(data)
            if on_result is not None:
                on_result(data)

        return results

    def health_check(self) -> bool:
        """False when disabled, when the circuit is open or the source is down."""
        if not self._enabled:
            return False
        if not self._circuit_breaker.allows_calls():
            logger.debug(f"{self.name}: circuit open, reporting unhealthy")
            return False
        return self.is_available()

    def is_available(self) -> bool:
        """
        Source-specific availability check.

        Default implementation returns True. Subclasses can override
        to ping their data source.
        """
        return True

    def get_config(self) -> ProviderConfig:
        return ProviderConfig(
            name=self.name,
            enabled=self._enabled,
            priority=self._priority,
            rate_limit=self._rate_limit,
            options=self._config_options(),
        )

    def _config_options(self) -> dict[str, Any]:
        return {}

    # =========================================================================
    # RATE LIMITING
    # =========================================================================

    def _check_rate_limit(self) -> None:
        """
        Consume one request from every configured window.

        Raises:
            RateLimitError: A window is exhausted (nothing is consumed)
        """
        if self._rate_limit is None:
            return

        items = self._rate_limit.to_limits()
        for item in items:
            if not self._limiter.test(item, self.name):
                reset_time, _ = self._limiter.get_window_stats(item, self.name)
                retry_after = max(1, int(reset_time - time.time()))
                logger.warning(f"{self.name}: client-side rate limit {item} reached")
                raise RateLimitError(provider=self.name, retry_after=retry_after)

        for item in items:
            self._limiter.hit(item, self.name)

    # =========================================================================
    # RETRY HELPER METHOD
    # =========================================================================

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Uses exponential backoff for ProviderUnavailableError only.

        Raises:
            The last exception if all retries fail
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type(ProviderUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()
