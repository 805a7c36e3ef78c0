# portfolio_tracker/services/prices/__init__.py
"""
Current-price lookup: providers, TTL cache and the fallback service.

Usage:
    from portfolio_tracker.services.prices import (
        PriceService,
        PriceRequest,
        MockPriceProvider,
    )
"""

from portfolio_tracker.services.prices.base import PriceProvider
from portfolio_tracker.services.prices.cache import PriceCache
from portfolio_tracker.services.prices.fx import FixedRateConverter
from portfolio_tracker.services.prices.mock import MockPriceProvider
from portfolio_tracker.services.prices.service import PriceService
from portfolio_tracker.services.prices.types import (
    BatchPriceResponse,
    CacheEntry,
    PortfolioPositionRef,
    PriceData,
    PricedPosition,
    PriceRequest,
    PriceResponse,
    ProviderConfig,
    RateLimitConfig,
)
from portfolio_tracker.services.prices.yahoo import YahooFinancePriceProvider

__all__ = [
    # Service
    "PriceService",
    "PriceCache",
    # Providers
    "PriceProvider",
    "MockPriceProvider",
    "YahooFinancePriceProvider",
    "FixedRateConverter",
    # Types
    "PriceRequest",
    "PriceData",
    "CacheEntry",
    "PriceResponse",
    "BatchPriceResponse",
    "ProviderConfig",
    "RateLimitConfig",
    "PortfolioPositionRef",
    "PricedPosition",
]
