# portfolio_tracker/schemas/portfolio.py
"""
Pydantic schemas for portfolio output and filter input.

These schemas handle:
- Enriched positions with their lots and realized gains
- Portfolio summary with currency breakdown
- Monthly investment timeline
- Filter parameters (search, asset class, date range)

The service layer returns frozen dataclasses; `from_domain` builds the
schema from them. Values are passed through unrounded; rounding is a
display concern.
"""

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from portfolio_tracker.models import AssetClass
from portfolio_tracker.schemas.validators import validate_date_range
from portfolio_tracker.services.portfolio.filters import PortfolioFilter
from portfolio_tracker.services.portfolio.types import (
    CurrencyBreakdown,
    EnrichedPosition,
    PortfolioSummary,
    TimelinePoint,
)
from portfolio_tracker.services.positions.types import BuyLot, RealizedGain


# =============================================================================
# LOTS & GAINS
# =============================================================================

class BuyLotSchema(BaseModel):
    """A remaining (part of a) buy lot."""

    model_config = ConfigDict(from_attributes=True)

    trade_id: str
    original_quantity: Decimal
    remaining_quantity: Decimal
    price_per_share: Decimal
    cost_per_share: Decimal = Field(..., description="Price per share including buy fees")
    remaining_cost_basis: Decimal
    trade_date: dt.datetime
    currency: str

    @classmethod
    def from_domain(cls, lot: BuyLot) -> "BuyLotSchema":
        return cls.model_validate(lot)


class RealizedGainSchema(BaseModel):
    """One sell matched against one buy lot."""

    model_config = ConfigDict(from_attributes=True)

    sell_trade_id: str
    buy_trade_id: str
    quantity: Decimal
    sell_price: Decimal
    buy_price: Decimal = Field(..., description="Lot cost per share, fees included")
    gross_proceeds: Decimal
    cost_basis: Decimal
    allocated_fees: Decimal
    realized_gain: Decimal
    sell_date: dt.datetime
    buy_date: dt.datetime
    currency: str

    @classmethod
    def from_domain(cls, gain: RealizedGain) -> "RealizedGainSchema":
        return cls.model_validate(gain)


# =============================================================================
# POSITIONS
# =============================================================================

class EnrichedPositionSchema(BaseModel):
    """Position with market data and performance metrics."""

    isin: str
    symbol: str
    name: str
    asset_class: AssetClass
    currency: str

    current_quantity: Decimal
    total_bought: Decimal
    total_sold: Decimal
    total_cost_basis: Decimal
    average_cost_per_share: Decimal
    total_buy_value: Decimal
    total_sell_value: Decimal
    total_fees_and_commissions: Decimal
    total_realized_gain: Decimal

    current_price: Decimal = Field(..., description="0 when no price is available")
    current_market_value: Decimal
    unrealized_gain: Decimal = Field(
        ...,
        description="Meaningless when price_error is set (equals -total_cost_basis)"
    )
    unrealized_gain_percent: Decimal
    total_gain: Decimal
    total_gain_percent: Decimal
    daily_change: Decimal | None = None
    daily_change_percent: Decimal | None = None
    price_last_updated: dt.datetime | None = None
    price_error: str | None = None

    first_trade_date: dt.datetime
    last_trade_date: dt.datetime
    trade_count: int
    warnings: list[str] = Field(default_factory=list)

    remaining_lots: list[BuyLotSchema] = Field(default_factory=list)
    realized_gains: list[RealizedGainSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(
            cls,
            enriched: EnrichedPosition,
            include_details: bool = True,
    ) -> "EnrichedPositionSchema":
        """
        Args:
            include_details: Include remaining lots and realized gain records
        """
        position = enriched.position
        return cls(
            isin=position.isin,
            symbol=position.symbol,
            name=position.name,
            asset_class=position.asset_class,
            currency=position.currency,
            current_quantity=position.current_quantity,
            total_bought=position.total_bought,
            total_sold=position.total_sold,
            total_cost_basis=position.total_cost_basis,
            average_cost_per_share=position.average_cost_per_share,
            total_buy_value=position.total_buy_value,
            total_sell_value=position.total_sell_value,
            total_fees_and_commissions=position.total_fees_and_commissions,
            total_realized_gain=position.total_realized_gain,
            current_price=enriched.current_price,
            current_market_value=enriched.current_market_value,
            unrealized_gain=enriched.unrealized_gain,
            unrealized_gain_percent=enriched.unrealized_gain_percent,
            total_gain=enriched.total_gain,
            total_gain_percent=enriched.total_gain_percent,
            daily_change=enriched.daily_change,
            daily_change_percent=enriched.daily_change_percent,
            price_last_updated=enriched.price_last_updated,
            price_error=enriched.price_error,
            first_trade_date=position.first_trade_date,
            last_trade_date=position.last_trade_date,
            trade_count=position.trade_count,
            warnings=list(position.warnings),
            remaining_lots=(
                [BuyLotSchema.from_domain(lot) for lot in position.remaining_lots]
                if include_details else []
            ),
            realized_gains=(
                [RealizedGainSchema.from_domain(gain) for gain in position.realized_gains]
                if include_details else []
            ),
        )


# =============================================================================
# SUMMARY
# =============================================================================

class CurrencyBreakdownSchema(BaseModel):
    """Share of the portfolio in one currency."""

    model_config = ConfigDict(from_attributes=True)

    currency: str
    positions: int
    invested: Decimal
    market_value: Decimal
    percentage: Decimal = Field(..., description="Share of total market value (0-100)")

    @classmethod
    def from_domain(cls, breakdown: CurrencyBreakdown) -> "CurrencyBreakdownSchema":
        return cls.model_validate(breakdown)


class PortfolioSummarySchema(BaseModel):
    """Complete portfolio summary."""

    model_config = ConfigDict(from_attributes=True)

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
    currency_breakdown: list[CurrencyBreakdownSchema]
    last_updated: dt.datetime
    prices_last_updated: dt.datetime | None = None
    positions_without_prices: int = 0

    @classmethod
    def from_domain(cls, summary: PortfolioSummary) -> "PortfolioSummarySchema":
        return cls.model_validate(summary)


# =============================================================================
# TIMELINE
# =============================================================================

class TimelinePointSchema(BaseModel):
    """Invested amount at the end of one month."""

    date: str = Field(..., pattern=r"^\d{4}-\d{2}$", examples=["2024-03"])
    invested: Decimal
    position_count: int

    @classmethod
    def from_domain(cls, point: TimelinePoint) -> "TimelinePointSchema":
        return cls(date=point.date, invested=point.invested, position_count=len(point.positions))


# =============================================================================
# FILTER PARAMETERS
# =============================================================================

class PortfolioFilterParams(BaseModel):
    """
    Filter parameters for portfolio queries.

    asset_type "ALL" (or omitted) means no asset class filter.
    """

    q: str | None = Field(
        default=None,
        max_length=100,
        description="Search symbol, name or ISIN (case-insensitive)"
    )
    asset_type: AssetClass | Literal["ALL"] | None = Field(default=None)
    date_from: dt.date | None = Field(default=None)
    date_to: dt.date | None = Field(default=None)

    @field_validator("q")
    @classmethod
    def strip_query(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def check_date_range(self) -> "PortfolioFilterParams":
        validate_date_range(self.date_from, self.date_to)
        return self

    def to_filter(self) -> PortfolioFilter:
        asset_class = None if self.asset_type in (None, "ALL") else AssetClass(self.asset_type)
        return PortfolioFilter(
            q=self.q,
            asset_class=asset_class,
            date_from=self.date_from,
            date_to=self.date_to,
        )
