# portfolio_tracker/services/portfolio/aggregator.py
"""
Portfolio aggregation - FIFO positions combined with current prices.

Flow:
    trades → FIFOPositionCalculator → positions
           → PriceService (one batch lookup) → EnrichedPosition
           → PortfolioSummary

All operations are best-effort: if the price service fails, the affected
positions are reported without a price (market value 0, price_error set)
and the call still returns.

Usage:
    aggregator = PortfolioAggregator(price_service)
    summary = aggregator.get_portfolio_summary(trades)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable

from portfolio_tracker.models import IdentifierType
from portfolio_tracker.services.constants import HUNDRED, PRICE_NOT_AVAILABLE, ZERO
from portfolio_tracker.services.portfolio.types import (
    CurrencyBreakdown,
    EnrichedPosition,
    PortfolioSummary,
    TimelinePoint,
)
from portfolio_tracker.services.positions.calculator import FIFOPositionCalculator
from portfolio_tracker.services.positions.types import AssetPosition, TradeExecution
from portfolio_tracker.services.prices.types import (
    PortfolioPositionRef,
    PriceData,
    PriceRequest,
)
from portfolio_tracker.services.protocols import PriceServiceProtocol

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator × 100, or 0 when denominator <= 0."""
    if denominator <= ZERO:
        return ZERO
    return numerator / denominator * HUNDRED


def month_key(moment: datetime) -> str:
    """YYYY-MM of a timestamp in UTC (naive timestamps are taken as UTC)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{moment.year:04d}-{moment.month:02d}"


class PortfolioAggregator:
    """
    Builds enriched positions, summaries and timelines from trades.

    Holds no state between calls apart from its collaborators; the price
    service (and its cache) is injected and may be shared.
    """

    def __init__(
            self,
            price_service: PriceServiceProtocol,
            calculator: FIFOPositionCalculator | None = None,
            clock: Callable[[], datetime] = _utcnow,
    ):
        self._price_service = price_service
        self._calculator = calculator or FIFOPositionCalculator()
        self._clock = clock

    # =========================================================================
    # ENRICHED POSITIONS
    # =========================================================================

    def get_enriched_positions(self, trades: Iterable[TradeExecution]) -> list[EnrichedPosition]:
        """
        Open positions with current prices and gain metrics.

        Positions keep the calculator's order (largest quantity first).
        """
        positions = self._calculator.calculate_portfolio_positions(trades)
        if not positions:
            return []

        price_map = self._fetch_prices(positions)

        return [
            self._enrich(position, price_map.get((position.asset_key, position.currency.upper())))
            for position in positions
        ]

    def _fetch_prices(self, positions: list[AssetPosition]) -> dict[tuple[str, str], PriceData]:
        """One batch lookup; returns (identifier, currency) -> quote."""
        refs = [
            PortfolioPositionRef(
                isin=position.isin,
                symbol=position.symbol,
                quantity=position.current_quantity,
                currency=position.currency,
            )
            for position in positions
        ]

        try:
            priced = self._price_service.enrich_portfolio_positions(refs)
        except Exception as e:
            logger.error(f"Price lookup failed for {len(refs)} positions: {e}")
            return {}

        price_map: dict[tuple[str, str], PriceData] = {}
        for item in priced:
            if item.price_data is not None:
                ref = item.position
                price_map[(ref.isin or ref.symbol, ref.currency.upper())] = item.price_data

        logger.debug(f"Priced {len(price_map)}/{len(refs)} positions")
        return price_map

    @staticmethod
    def _enrich(position: AssetPosition, price_data: PriceData | None) -> EnrichedPosition:
        """
        Compute market value and gain metrics for one position.

        Without a quote the price counts as 0, so unrealized_gain becomes
        -total_cost_basis; price_error marks the value as not meaningful.
        """
        current_price = price_data.price if price_data is not None else ZERO
        current_market_value = position.current_quantity * current_price

        unrealized_gain = current_market_value - position.total_cost_basis
        total_gain = position.total_realized_gain + unrealized_gain

        daily_change = None
        daily_change_percent = None
        if price_data is not None:
            if price_data.change and position.current_quantity:
                daily_change = price_data.change * position.current_quantity
            daily_change_percent = price_data.change_percent

        return EnrichedPosition(
            position=position,
            current_price=current_price,
            current_market_value=current_market_value,
            unrealized_gain=unrealized_gain,
            unrealized_gain_percent=_percent(unrealized_gain, position.total_cost_basis),
            total_gain=total_gain,
            total_gain_percent=_percent(total_gain, position.total_buy_value),
            price_data=price_data,
            daily_change=daily_change,
            daily_change_percent=daily_change_percent,
            price_last_updated=price_data.timestamp if price_data is not None else None,
            price_error=None if price_data is not None else PRICE_NOT_AVAILABLE,
        )

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def get_portfolio_summary(self, trades: Iterable[TradeExecution]) -> PortfolioSummary:
        """
        Portfolio-wide totals.

        Percentages are 0 whenever their denominator is <= 0. An empty
        trade list gives an all-zero summary.
        """
        enriched = self.get_enriched_positions(trades)

        total_invested = sum((p.total_cost_basis for p in enriched), ZERO)
        total_market_value = sum((p.current_market_value for p in enriched), ZERO)
        total_realized_gain = sum((p.total_realized_gain for p in enriched), ZERO)
        total_unrealized_gain = sum((p.unrealized_gain for p in enriched), ZERO)
        total_gain = total_realized_gain + total_unrealized_gain

        total_daily_change = sum(
            (p.daily_change for p in enriched if p.daily_change is not None), ZERO
        )
        previous_value = total_market_value - total_daily_change

        position_count = len(enriched)
        average_position_size = (
            total_market_value / position_count if position_count > 0 else ZERO
        )

        price_timestamps = [p.price_last_updated for p in enriched if p.price_last_updated is not None]

        return PortfolioSummary(
            total_invested=total_invested,
            total_market_value=total_market_value,
            total_unrealized_gain=total_unrealized_gain,
            total_unrealized_gain_percent=_percent(total_unrealized_gain, total_invested),
            total_realized_gain=total_realized_gain,
            total_gain=total_gain,
            total_gain_percent=_percent(total_gain, total_invested),
            total_daily_change=total_daily_change,
            total_daily_change_percent=_percent(total_daily_change, previous_value),
            position_count=position_count,
            total_shares=sum((p.current_quantity for p in enriched), ZERO),
            average_position_size=average_position_size,
            total_fees_and_commissions=sum((p.total_fees_and_commissions for p in enriched), ZERO),
            currency_breakdown=self._currency_breakdown(enriched, total_market_value),
            last_updated=self._clock(),
            prices_last_updated=max(price_timestamps) if price_timestamps else None,
            positions_without_prices=sum(1 for p in enriched if not p.has_price),
        )

    @staticmethod
    def _currency_breakdown(
            enriched: list[EnrichedPosition],
            total_market_value: Decimal,
    ) -> tuple[CurrencyBreakdown, ...]:
        """Group by position currency, in order of first appearance."""
        buckets: dict[str, list[EnrichedPosition]] = defaultdict(list)
        for position in enriched:
            buckets[position.currency].append(position)

        breakdown = []
        for currency, positions in buckets.items():
            market_value = sum((p.current_market_value for p in positions), ZERO)
            breakdown.append(CurrencyBreakdown(
                currency=currency,
                positions=len(positions),
                invested=sum((p.total_cost_basis for p in positions), ZERO),
                market_value=market_value,
                percentage=_percent(market_value, total_market_value),
            ))
        return tuple(breakdown)

    # =========================================================================
    # SINGLE ASSET
    # =========================================================================

    def get_asset_position(
            self,
            trades: Iterable[TradeExecution],
            asset_id: str,
    ) -> EnrichedPosition | None:
        """
        Enriched position of one asset, using a single (non-batched) lookup.

        Args:
            asset_id: ISIN of the asset (or its symbol if it has no ISIN)

        Returns:
            None if no trade matches asset_id
        """
        asset_trades = [t for t in trades if t.asset_key == asset_id]
        position = self._calculator.calculate_asset_position(asset_trades)
        if position is None:
            return None

        if position.isin:
            request = PriceRequest(position.isin, IdentifierType.ISIN, position.currency)
        else:
            request = PriceRequest(position.symbol, IdentifierType.SYMBOL, position.currency)

        price_data = None
        try:
            response = self._price_service.get_current_price(request)
            if response.success:
                price_data = response.data
        except Exception as e:
            logger.error(f"Price lookup failed for {asset_id}: {e}")

        return self._enrich(position, price_data)

    # =========================================================================
    # TIMELINE
    # =========================================================================

    def calculate_portfolio_timeline(self, trades: Iterable[TradeExecution]) -> list[TimelinePoint]:
        """
        Month-by-month cumulative positions.

        Each point recomputes all positions from every trade up to and
        including that month; invested is their remaining cost basis.
        Months without trades are not emitted.
        """
        sorted_trades = sorted(trades, key=lambda t: t.trade_date)
        if not sorted_trades:
            return []

        monthly: dict[str, list[TradeExecution]] = defaultdict(list)
        for trade in sorted_trades:
            monthly[month_key(trade.trade_date)].append(trade)

        timeline: list[TimelinePoint] = []
        cumulative: list[TradeExecution] = []

        for key in sorted(monthly):
            cumulative.extend(monthly[key])
            positions = self._calculator.calculate_portfolio_positions(cumulative)
            timeline.append(TimelinePoint(
                date=key,
                invested=sum((p.total_cost_basis for p in positions), ZERO),
                positions=tuple(positions),
            ))

        return timeline
