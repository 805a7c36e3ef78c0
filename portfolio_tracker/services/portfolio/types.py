# portfolio_tracker/services/portfolio/types.py
"""
Data types produced by PortfolioAggregator.

These are plain frozen dataclasses. Pydantic schemas for presentation
consumers live in portfolio_tracker/schemas/portfolio.py.

Percentages are on a 0-100 scale (12.5 means 12.5%).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from portfolio_tracker.services.positions.types import AssetPosition
from portfolio_tracker.services.prices.types import PriceData


@dataclass(frozen=True)
class EnrichedPosition:
    """
    An AssetPosition joined with its current quote.

    Position fields are reachable directly (enriched.symbol,
    enriched.total_cost_basis, ...) through attribute delegation.

    Attributes:
        current_price: Quote price, 0 when no price was found
        current_market_value: current_quantity × current_price
        unrealized_gain: current_market_value - total_cost_basis; for an
            unpriced position this is -total_cost_basis and only meaningful
            together with price_error
        total_gain: total_realized_gain + unrealized_gain
        total_gain_percent: Relative to total_buy_value
        daily_change: quote change × current_quantity, None when unknown
        price_error: Set when no price was found
    """

    position: AssetPosition
    current_price: Decimal
    current_market_value: Decimal
    unrealized_gain: Decimal
    unrealized_gain_percent: Decimal
    total_gain: Decimal
    total_gain_percent: Decimal
    price_data: PriceData | None = None
    daily_change: Decimal | None = None
    daily_change_percent: Decimal | None = None
    price_last_updated: datetime | None = None
    price_error: str | None = None

    def __getattr__(self, name: str) -> Any:
        # Only called when normal lookup fails
        if name == "position":
            raise AttributeError(name)
        return getattr(self.position, name)

    @property
    def has_price(self) -> bool:
        return self.price_data is not None


@dataclass(frozen=True)
class CurrencyBreakdown:
    """Share of the portfolio held in one currency."""

    currency: str
    positions: int
    invested: Decimal
    market_value: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class PortfolioSummary:
    """
    Portfolio-wide totals over all enriched positions.

    Attributes:
        total_invested: Sum of remaining cost basis
        total_unrealized_gain_percent / total_gain_percent: Relative to total_invested
        total_daily_change_percent: Relative to yesterday's value
            (market value minus daily change)
        average_position_size: Market value per position
        prices_last_updated: Newest quote timestamp, None if nothing was priced
        positions_without_prices: Positions with a price_error
    """

    total_invested: Decimal
    total_market_value: Decimal
    total_unrealized_gain: Decimal
    total_unrealized_gain_percent: Decimal
    total_realized_gain: Decimal
    total_gain: Decimal
    total_gain_percent: Decimal
    total_daily_change: Decimal
    total_daily_change_percent: Decimal
    position_count: int
    total_shares: Decimal
    average_position_size: Decimal
    total_fees_and_commissions: Decimal
    currency_breakdown: tuple[CurrencyBreakdown, ...]
    last_updated: datetime
    prices_last_updated: datetime | None = None
    positions_without_prices: int = 0


@dataclass(frozen=True)
class TimelinePoint:
    """Cumulative portfolio state at the end of one calendar month."""

    date: str  # YYYY-MM
    invested: Decimal
    positions: tuple[AssetPosition, ...] = field(default_factory=tuple)
