# portfolio_tracker/dependencies.py
"""
Service factories.

Builds the object graph from a Settings instance:

    Settings
    └── PriceService
        ├── PriceCache (TTL, max size)
        └── providers, each with its own CircuitBreaker and rate limit
    └── PortfolioAggregator (uses the PriceService)

Nothing here is cached at module level: the caller owns the instances and
decides how long they live. Share one PriceService between aggregators so
they share its cache and provider state.

Usage:
    from portfolio_tracker.config import Settings
    from portfolio_tracker.dependencies import create_portfolio_aggregator, create_price_service

    settings = Settings()
    with create_price_service(settings) as price_service:
        aggregator = create_portfolio_aggregator(price_service)
        summary = aggregator.get_portfolio_summary(trades)
"""

import logging

from portfolio_tracker.config import Settings
from portfolio_tracker.services.circuit_breaker import CircuitBreaker
from portfolio_tracker.services.exceptions import FXConversionError, InvalidSymbolError, TickerNotFoundError
from portfolio_tracker.services.portfolio.aggregator import PortfolioAggregator
from portfolio_tracker.services.prices.base import PriceProvider
from portfolio_tracker.services.prices.cache import PriceCache
from portfolio_tracker.services.prices.fx import FixedRateConverter
from portfolio_tracker.services.prices.mock import MockPriceProvider
from portfolio_tracker.services.prices.service import PriceService
from portfolio_tracker.services.prices.yahoo import YahooFinancePriceProvider

logger = logging.getLogger(__name__)

# Provider name -> class; names are what PORTFOLIO_ENABLED_PROVIDERS lists
PROVIDER_CLASSES: dict[str, type[PriceProvider]] = {
    "yahoo": YahooFinancePriceProvider,
    "mock": MockPriceProvider,
}


def create_circuit_breaker(name: str, settings: Settings) -> CircuitBreaker:
    return CircuitBreaker(
        name=name,
        failure_threshold=settings.circuit_breaker_failure_threshold,
        recovery_timeout=settings.circuit_breaker_recovery_timeout,
        half_open_max_calls=settings.circuit_breaker_half_open_max_calls,
        failure_window=settings.circuit_breaker_failure_window,
        excluded_exceptions=(TickerNotFoundError, InvalidSymbolError, FXConversionError),
    )


def create_providers(settings: Settings) -> list[PriceProvider]:
    """
    Build the enabled providers.

    Raises:
        ValueError: A provider name in enabled_providers is unknown
    """
    providers: list[PriceProvider] = []

    for name in settings.enabled_providers:
        provider_class = PROVIDER_CLASSES.get(name)
        if provider_class is None:
            known = ", ".join(sorted(PROVIDER_CLASSES))
            raise ValueError(f"Unknown price provider '{name}'. Known providers: {known}")

        providers.append(provider_class(
            priority=settings.provider_priorities.get(name),
            rate_limit=settings.provider_rate_limits.get(name),
            circuit_breaker=create_circuit_breaker(name, settings),
            converter=FixedRateConverter(settings.fx_rates),
        ))

    return providers


def create_price_service(settings: Settings | None = None) -> PriceService:
    """Build a PriceService with its cache and providers."""
    settings = settings or Settings()
    logger.debug("Creating PriceService")

    cache = PriceCache(
        ttl_seconds=settings.price_cache_ttl_seconds,
        max_size=settings.price_cache_max_size,
    )
    return PriceService(
        providers=create_providers(settings),
        cache=cache,
        default_currency=settings.default_currency,
        provider_timeout_seconds=settings.provider_timeout_seconds,
    )


def create_portfolio_aggregator(price_service: PriceService) -> PortfolioAggregator:
    """
    Build a PortfolioAggregator on a caller-owned price service.

    The caller closes the price service (its provider threads) when done.
    """
    return PortfolioAggregator(price_service=price_service)
