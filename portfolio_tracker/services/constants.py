# portfolio_tracker/services/constants.py
"""
Centralized constants for the portfolio tracker services.

Defaults here are used when no Settings instance overrides them
(see portfolio_tracker/config.py).

Usage:
    from portfolio_tracker.services.constants import (
        DEFAULT_CURRENCY,
        PRICE_CACHE_TTL_SECONDS,
    )
"""

from decimal import Decimal


# =============================================================================
# ARITHMETIC
# =============================================================================

ZERO: Decimal = Decimal("0")
HUNDRED: Decimal = Decimal("100")


# =============================================================================
# CURRENCY
# =============================================================================

# Currency used for price requests that don't specify one
DEFAULT_CURRENCY: str = "USD"

# Currency assumed for trade events whose payload omits it
DEFAULT_TRADE_CURRENCY: str = "EUR"


# =============================================================================
# PRICE CACHE SETTINGS
# =============================================================================

# Time-to-live for cached price quotes in seconds
# 15 minutes = typical delay of free market data anyway
PRICE_CACHE_TTL_SECONDS: int = 15 * 60

# Maximum number of cached quotes before least-recently-used eviction
# A personal portfolio rarely holds more than a few dozen assets
PRICE_CACHE_MAX_SIZE: int = 1000


# =============================================================================
# PROVIDER SETTINGS
# =============================================================================

# Timeout applied to every provider call made by the price service
PROVIDER_TIMEOUT_SECONDS: float = 10.0

# Interval at which a waiting lookup checks its cancellation event
PROVIDER_CANCEL_POLL_SECONDS: float = 0.05

# Worker threads per provider for running its calls under a deadline
PROVIDER_MAX_WORKERS: int = 4

# Default priorities (lower = tried first)
YAHOO_PROVIDER_PRIORITY: int = 10
MOCK_PROVIDER_PRIORITY: int = 999


# =============================================================================
# CIRCUIT BREAKER SETTINGS
# =============================================================================

# Number of failures before a provider's circuit opens
CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5

# Seconds to wait before letting a test call through again
CIRCUIT_BREAKER_RECOVERY_TIMEOUT: float = 60.0

# Maximum calls allowed in half-open state
CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS: int = 3

# Sliding window (seconds) for counting failures (0 = count all failures)
CIRCUIT_BREAKER_FAILURE_WINDOW: float = 300.0


# =============================================================================
# MESSAGES
# =============================================================================

PRICE_NOT_AVAILABLE: str = "Price data not available"
