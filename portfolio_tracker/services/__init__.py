# portfolio_tracker/services/__init__.py
"""
Service layer for portfolio calculations and price lookups.

Services:
- Have NO knowledge of presentation (no schemas, no formatting)
- Raise domain-specific exceptions (price lookups report codes instead)
- Receive their collaborators through the constructor
- Are easily testable via dependency injection

Usage:
    from portfolio_tracker.services import FIFOPositionCalculator
    from portfolio_tracker.services import PortfolioAggregator
    from portfolio_tracker.services import PriceService, PriceRequest

Architecture:
    services/
    ├── __init__.py          # This file - main exports
    ├── exceptions.py        # Domain exceptions
    ├── constants.py         # Defaults and limits
    ├── protocols.py         # Service interfaces (Protocol classes)
    ├── circuit_breaker.py   # Circuit breaker for price providers
    ├── positions/           # FIFO lot accounting
    │   ├── types.py         # Trade, lot, gain and position types
    │   └── calculator.py    # FIFOPositionCalculator
    ├── prices/              # Current prices
    │   ├── types.py         # Request/response types
    │   ├── base.py          # Abstract provider (retry, rate limit, breaker)
    │   ├── cache.py         # TTL cache
    │   ├── fx.py            # Fixed-rate currency conversion
    │   ├── mock.py          # Deterministic mock provider
    │   ├── yahoo.py         # Yahoo Finance provider
    │   └── service.py       # PriceService (cache + fallback)
    └── portfolio/           # Aggregation
        ├── types.py         # Enriched position, summary, timeline
        ├── filters.py       # Trade filters
        └── aggregator.py    # PortfolioAggregator
"""

# Exceptions
from portfolio_tracker.services.exceptions import (
    CircuitBreakerOpen,
    FXConversionError,
    InvalidSymbolError,
    MarketDataError,
    PriceLookupCancelledError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    TickerNotFoundError,
)

# Positions
from portfolio_tracker.services.positions import FIFOPositionCalculator

# Prices
from portfolio_tracker.services.prices import (
    MockPriceProvider,
    PriceCache,
    PriceProvider,
    PriceRequest,
    PriceService,
    YahooFinancePriceProvider,
)

# Portfolio
from portfolio_tracker.services.portfolio import PortfolioAggregator, PortfolioFilter, apply_filters

# Protocols
from portfolio_tracker.services.protocols import PriceServiceProtocol

__all__ = [
    # Positions
    "FIFOPositionCalculator",
    # Prices
    "PriceService",
    "PriceCache",
    "PriceRequest",
    "PriceProvider",
    "MockPriceProvider",
    "YahooFinancePriceProvider",
    # Portfolio
    "PortfolioAggregator",
    "PortfolioFilter",
    "apply_filters",
    # Protocols
    "PriceServiceProtocol",
    # Exceptions
    "ServiceError",
    "MarketDataError",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    "PriceLookupCancelledError",
    "TickerNotFoundError",
    "InvalidSymbolError",
    "RateLimitError",
    "FXConversionError",
    "CircuitBreakerOpen",
]
