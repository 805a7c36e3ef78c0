# portfolio_tracker/services/prices/service.py
"""
Price service - cache plus ordered provider fallback.

Lookup flow for one (identifier_type, identifier, currency) key:
1. Fill in the default currency
2. Serve from the cache if a live entry exists
3. Otherwise try providers in ascending priority: health check first,
   then the lookup; the first success is cached and returned
4. If nobody delivers, report NOT_FOUND and leave the key uncached

Failures never raise out of this service. Each provider failure is
recorded as a PriceErrorCode and the next provider is tried.

Timeouts and cancellation:
    Provider calls run on a small thread pool so a per-provider deadline
    and an optional threading.Event can cut them short. The fallback loop
    itself stays sequential; a later provider is only asked once the
    earlier one has failed. An abandoned call keeps running in its worker
    thread but its result is ignored.

    Every provider has its own pool, so calls stuck on a hung provider
    never delay another provider. A timeout counts as a failure on the
    provider's circuit breaker; once it opens, the provider is skipped.

    A batch that runs past the deadline keeps the quotes it delivered
    before the deadline; only the rest falls through to the next provider.

Usage:
    service = PriceService(providers=[YahooFinancePriceProvider(), MockPriceProvider()])
    response = service.get_current_price(PriceRequest("AAPL"))
    if response.success:
        print(response.data.price)
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Iterable, TypeVar

from portfolio_tracker.models import PriceErrorCode
from portfolio_tracker.services.constants import (
    DEFAULT_CURRENCY,
    PRICE_NOT_AVAILABLE,
    PROVIDER_CANCEL_POLL_SECONDS,
    PROVIDER_MAX_WORKERS,
    PROVIDER_TIMEOUT_SECONDS,
)
from portfolio_tracker.services.exceptions import (
    PriceLookupCancelledError,
    ProviderTimeoutError,
    error_code_for,
)
from portfolio_tracker.services.prices.base import PriceProvider
from portfolio_tracker.services.prices.cache import PriceCache
from portfolio_tracker.services.prices.types import (
    BatchPriceResponse,
    PortfolioPositionRef,
    PriceData,
    PricedPosition,
    PriceRequest,
    PriceResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


class _BatchCollector:
    """
    Quotes a provider batch has delivered so far.

    Once closed, further deliveries raise PriceLookupCancelledError in the
    provider's thread, which ends the abandoned batch.
    """

    def __init__(self, provider_name: str):
        self._provider_name = provider_name
        self._items: list[PriceData] = []
        self._closed = False
        self._lock = threading.Lock()

    def add(self, data: PriceData) -> None:
        with self._lock:
            if self._closed:
                raise PriceLookupCancelledError(self._provider_name)
            self._items.append(data)

    def close(self) -> list[PriceData]:
        with self._lock:
            self._closed = True
            return list(self._items)


class PriceService:
    """
    Resolves current prices through a TTL cache and a provider chain.

    Construct one instance per process (see dependencies.py) and pass it
    to whoever needs prices.
    """

    def __init__(
            self,
            providers: Iterable[PriceProvider],
            cache: PriceCache | None = None,
            default_currency: str = DEFAULT_CURRENCY,
            provider_timeout_seconds: float | None = PROVIDER_TIMEOUT_SECONDS,
            max_workers: int = PROVIDER_MAX_WORKERS,
    ):
        """
        Args:
            providers: Price providers, in any order (sorted by priority here)
            cache: Quote cache (default: a new PriceCache with the default TTL)
            default_currency: Currency for requests that don't name one
            provider_timeout_seconds: Deadline per provider call (None = wait forever)
            max_workers: Threads available per provider
        """
        # sorted() is stable: equal priorities keep their given order
        self._providers: list[PriceProvider] = sorted(providers, key=lambda p: p.priority)
        self._cache = cache if cache is not None else PriceCache()
        self._default_currency = default_currency.upper()
        self._timeout = provider_timeout_seconds
        # Keyed by id(): provider names need not be unique
        self._executors: dict[int, ThreadPoolExecutor] = {
            id(provider): ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix=f"price-{provider.name}",
            )
            for provider in self._providers
        }

        logger.info(
            f"PriceService initialized with providers "
            f"{[p.name for p in self._providers]} "
            f"(default currency {self._default_currency}, timeout {self._timeout}s)"
        )

    @property
    def providers(self) -> list[PriceProvider]:
        return list(self._providers)

    @property
    def cache(self) -> PriceCache:
        return self._cache

    @property
    def default_currency(self) -> str:
        return self._default_currency

    # =========================================================================
    # SINGLE LOOKUP
    # =========================================================================

    def get_current_price(
            self,
            request: PriceRequest,
            cancel_event: threading.Event | None = None,
    ) -> PriceResponse:
        """
        Get the current price for one asset.

        Args:
            request: What to price; currency defaults to the service default
            cancel_event: When set, the running provider call is abandoned
                and counts as a failure of that provider

        Returns:
            PriceResponse - success with data, or NOT_FOUND with the
            per-provider error codes
        """
        request = request.with_currency(self._default_currency)

        cached = self._cache.get(request.identifier, request.identifier_type, request.currency)
        if cached is not None:
            return PriceResponse(success=True, data=cached, from_cache=True)

        provider_errors: dict[str, PriceErrorCode] = {}

        for provider in self._providers:
            data, code = self._try_provider(provider, request, cancel_event)

            if data is not None:
                self._cache.set(request.identifier, request.identifier_type, request.currency, data)
                return PriceResponse(
                    success=True,
                    data=data,
                    provider=provider.name,
                    provider_errors=provider_errors,
                )

            provider_errors[provider.name] = code
            if code == PriceErrorCode.RATE_LIMITED:
                logger.info(f"{provider.name} rate limited for {request.identifier}, trying next provider")

        logger.warning(
            f"No provider could fetch price for {request.identifier} "
            f"({request.currency}): {self._format_errors(provider_errors)}"
        )
        return PriceResponse(
            success=False,
            error=f"No provider could fetch price for {request.identifier}",
            code=PriceErrorCode.NOT_FOUND,
            provider_errors=provider_errors,
        )

    def _try_provider(
            self,
            provider: PriceProvider,
            request: PriceRequest,
            cancel_event: threading.Event | None,
    ) -> tuple[PriceData | None, PriceErrorCode | None]:
        """
        One attempt against one provider.

        Returns:
            (data, None) on success, (None, error code) on any failure
        """
        try:
            if not provider.health_check():
                logger.debug(f"Provider {provider.name} is not healthy, skipping")
                return None, PriceErrorCode.API_ERROR

            data = self._call_provider(provider, cancel_event, provider.get_current_price, request)
            return data, None

        except Exception as e:
            if isinstance(e, ProviderTimeoutError):
                provider.circuit_breaker.record_failure()
            code = error_code_for(e)
            if code == PriceErrorCode.API_ERROR:
                logger.error(f"Provider {provider.name} failed for {request.identifier}: {e}")
            else:
                logger.debug(f"Provider {provider.name} returned {code.value} for {request.identifier}: {e}")
            return None, code

    # =========================================================================
    # BATCH LOOKUP
    # =========================================================================

    def get_batch_prices(
            self,
            requests: Iterable[PriceRequest],
            cancel_event: threading.Event | None = None,
    ) -> BatchPriceResponse:
        """
        Get prices for many assets at once.

        Cache hits are answered first; only the misses go to providers, and
        each provider only sees what the previous ones couldn't resolve.

        Returns:
            BatchPriceResponse - always successful; unresolved requests are
            absent from `data` and listed in `missing`
        """
        results: list[PriceData] = []
        pending: list[PriceRequest] = []

        for request in requests:
            request = request.with_currency(self._default_currency)
            cached = self._cache.get(request.identifier, request.identifier_type, request.currency)
            if cached is not None:
                results.append(cached)
            else:
                pending.append(request)

        cache_hits = len(results)
        if not pending:
            return BatchPriceResponse(data=results, cache_hits=cache_hits)

        for provider in self._providers:
            if not pending:
                break

            collector = _BatchCollector(provider.name)
            try:
                if not provider.health_check():
                    logger.debug(f"Provider {provider.name} is not healthy, skipping batch")
                    continue
                batch = self._call_provider(
                    provider,
                    cancel_event,
                    provider.get_batch_prices,
                    list(pending),
                    on_result=collector.add,
                )
            except (ProviderTimeoutError, PriceLookupCancelledError) as e:
                batch = collector.close()
                # Only a batch that delivered nothing counts against the breaker
                if isinstance(e, ProviderTimeoutError) and not batch:
                    provider.circuit_breaker.record_failure()
                logger.warning(
                    f"Batch lookup via {provider.name} stopped early ({e}), "
                    f"keeping {len(batch)} prices"
                )
            except Exception as e:
                logger.warning(f"Batch lookup via {provider.name} failed: {e}")
                continue

            wanted = {request.key for request in pending}
            resolved = set()
            for data in batch:
                if data.key not in wanted or data.key in resolved:
                    continue
                results.append(data)
                resolved.add(data.key)
                self._cache.set(data.identifier, data.identifier_type, data.currency, data)

            pending = [request for request in pending if request.key not in resolved]
            logger.debug(f"{provider.name} resolved {len(resolved)} prices, {len(pending)} remaining")

        if pending:
            logger.info(
                f"Batch lookup left {len(pending)} unresolved: "
                f"{[request.identifier for request in pending]}"
            )

        return BatchPriceResponse(data=results, missing=pending, cache_hits=cache_hits)

    def enrich_portfolio_positions(
            self,
            positions: Iterable[PortfolioPositionRef],
    ) -> list[PricedPosition]:
        """
        Attach quotes to positions with one batch lookup.

        The ISIN identifies a position when present, else the symbol.
        current_value = quantity × price for positions that got a price.
        """
        positions = list(positions)
        requests = [position.to_request() for position in positions]
        batch = self.get_batch_prices(requests)

        price_map = {data.key: data for data in batch.data}

        enriched: list[PricedPosition] = []
        for position, request in zip(positions, requests):
            data = price_map.get(request.with_currency(self._default_currency).key)
            if data is not None:
                enriched.append(PricedPosition(
                    position=position,
                    price_data=data,
                    current_value=position.quantity * data.price,
                ))
            else:
                enriched.append(PricedPosition(position=position, error=PRICE_NOT_AVAILABLE))
        return enriched

    # =========================================================================
    # PROVIDER CALLS
    # =========================================================================

    def _call_provider(
            self,
            provider: PriceProvider,
            cancel_event: threading.Event | None,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Run a provider call on that provider's pool, under the deadline
        and the cancel event.

        Raises:
            ProviderTimeoutError: Deadline passed
            PriceLookupCancelledError: cancel_event was set
            Whatever the provider raised
        """
        if cancel_event is not None and cancel_event.is_set():
            raise PriceLookupCancelledError(provider.name)

        future = self._executors[id(provider)].submit(func, *args, **kwargs)
        deadline = None if self._timeout is None else time.monotonic() + self._timeout

        while True:
            if cancel_event is not None:
                wait_for = PROVIDER_CANCEL_POLL_SECONDS
                if deadline is not None:
                    wait_for = min(wait_for, max(0.0, deadline - time.monotonic()))
            elif deadline is not None:
                wait_for = max(0.0, deadline - time.monotonic())
            else:
                wait_for = None

            done, _ = wait([future], timeout=wait_for)
            if done:
                return future.result()

            if cancel_event is not None and cancel_event.is_set():
                future.cancel()
                logger.info(f"Price lookup via {provider.name} cancelled")
                raise PriceLookupCancelledError(provider.name)

            if deadline is not None and time.monotonic() >= deadline:
                future.cancel()
                logger.warning(f"Provider {provider.name} timed out after {self._timeout}s")
                raise ProviderTimeoutError(provider.name, self._timeout)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> dict[str, Any]:
        """Cache size and the provider names in fallback order."""
        return {
            "size": len(self._cache),
            "providers": [provider.name for provider in self._providers],
            "cache": self._cache.stats(),
        }

    def close(self) -> None:
        """Stop the worker threads; pending provider calls are dropped."""
        for executor in self._executors.values():
            executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "PriceService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @staticmethod
    def _format_errors(provider_errors: dict[str, PriceErrorCode]) -> str:
        if not provider_errors:
            return "no providers configured"
        return ", ".join(f"{name}={code.value}" for name, code in provider_errors.items())
