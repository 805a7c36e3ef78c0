# portfolio_tracker/services/prices/types.py
"""
Data types for price lookups.

PriceData is what providers return and what the cache stores. The
response types wrap results the way the price service reports them:
success plus data, or a PriceErrorCode - the service never raises for
a failed lookup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from limits import RateLimitItem, RateLimitItemPerDay, RateLimitItemPerMinute, parse_many

from portfolio_tracker.models import IdentifierType, PriceErrorCode


# Cache/join key: (identifier_type, identifier, currency)
PriceKey = tuple[IdentifierType, str, str]


@dataclass(frozen=True)
class PriceRequest:
    """
    Request for the current price of one asset.

    currency=None means "the service's default currency".
    """

    identifier: str
    identifier_type: IdentifierType = IdentifierType.SYMBOL
    currency: str | None = None

    def with_currency(self, default_currency: str) -> PriceRequest:
        """Return a copy whose currency is filled in."""
        return PriceRequest(
            identifier=self.identifier,
            identifier_type=self.identifier_type,
            currency=(self.currency or default_currency).upper(),
        )

    @property
    def key(self) -> PriceKey:
        return (self.identifier_type, self.identifier, (self.currency or "").upper())


@dataclass(frozen=True)
class PriceData:
    """
    A current price quote.

    Attributes:
        identifier / identifier_type: Echo of the request
        symbol: Ticker the provider resolved the identifier to
        name: Display name
        price: Last price in `currency`
        timestamp: When the provider produced the quote
        change / change_percent / previous_close: Daily move, if known
    """

    identifier: str
    identifier_type: IdentifierType
    symbol: str
    name: str
    price: Decimal
    currency: str
    timestamp: datetime
    change: Decimal | None = None
    change_percent: Decimal | None = None
    previous_close: Decimal | None = None

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price cannot be negative, got {self.price}")

    @property
    def key(self) -> PriceKey:
        return (self.identifier_type, self.identifier, self.currency.upper())


@dataclass(frozen=True)
class CacheEntry:
    """A cached quote; usable only while now < expires_at."""

    data: PriceData
    fetched_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class PriceResponse:
    """
    Result of a single price lookup.

    Attributes:
        success: True if `data` is set
        data: The quote on success
        error: Human readable reason on failure
        code: NOT_FOUND when no provider could deliver
        provider: Provider that delivered, or None for a cache hit
        from_cache: True if served from the cache
        provider_errors: Provider name -> code for every failed attempt
    """

    success: bool
    data: PriceData | None = None
    error: str | None = None
    code: PriceErrorCode | None = None
    provider: str | None = None
    from_cache: bool = False
    provider_errors: dict[str, PriceErrorCode] = field(default_factory=dict)


@dataclass
class BatchPriceResponse:
    """
    Result of a batch lookup.

    Always successful; identifiers nobody could price are simply absent
    from `data` and listed in `missing`.
    """

    data: list[PriceData] = field(default_factory=list)
    missing: list[PriceRequest] = field(default_factory=list)
    cache_hits: int = 0
    success: bool = True

    @property
    def resolved_count(self) -> int:
        return len(self.data)


# =============================================================================
# PROVIDER CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class RateLimitConfig:
    """Client-side request budget of a provider."""

    requests_per_minute: int
    requests_per_day: int | None = None

    @classmethod
    def parse(cls, value: str) -> RateLimitConfig:
        """
        Build from limits notation ("100/minute", "1000/day;60/minute").

        Only per-minute and per-day granularities are understood.
        """
        per_minute: int | None = None
        per_day: int | None = None
        for item in parse_many(value):
            if item.GRANULARITY.name == "minute":
                per_minute = item.amount // item.multiples
            elif item.GRANULARITY.name == "day":
                per_day = item.amount // item.multiples
            else:
                raise ValueError(f"Unsupported rate limit granularity in '{value}'")
        if per_minute is None:
            raise ValueError(f"Rate limit '{value}' has no per-minute budget")
        return cls(requests_per_minute=per_minute, requests_per_day=per_day)

    def to_limits(self) -> list[RateLimitItem]:
        items: list[RateLimitItem] = [RateLimitItemPerMinute(self.requests_per_minute)]
        if self.requests_per_day:
            items.append(RateLimitItemPerDay(self.requests_per_day))
        return items


@dataclass(frozen=True)
class ProviderConfig:
    """Static description of a provider, as returned by get_config()."""

    name: str
    enabled: bool
    priority: int
    rate_limit: RateLimitConfig | None = None
    options: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# PORTFOLIO ENRICHMENT
# =============================================================================

@dataclass(frozen=True)
class PortfolioPositionRef:
    """Minimal position description used to request prices."""

    isin: str
    symbol: str
    quantity: Decimal
    currency: str

    def to_request(self) -> PriceRequest:
        # Prefer the stable ISIN over the display symbol
        if self.isin:
            return PriceRequest(self.isin, IdentifierType.ISIN, self.currency)
        return PriceRequest(self.symbol, IdentifierType.SYMBOL, self.currency)


@dataclass(frozen=True)
class PricedPosition:
    """A PortfolioPositionRef joined with its quote (if any)."""

    position: PortfolioPositionRef
    price_data: PriceData | None = None
    current_value: Decimal | None = None
    error: str | None = None
