# portfolio_tracker/services/positions/calculator.py
"""
FIFO (First-In-First-Out) position calculator.

Converts a flat list of trade executions into per-asset positions:
- Remaining buy lots (oldest first)
- Realized gains, one record per (sell, lot) match
- Cost basis of the shares still held

Design Principles:
- Stateless: every call takes its full input and returns fresh results
- Deterministic: lots are consumed by ascending trade date, ties keep input order
- Uses Decimal for ALL financial calculations, no intermediate rounding
- Business-rule violations (selling more than held) degrade to a warning

Usage:
    calculator = FIFOPositionCalculator()
    positions = calculator.calculate_portfolio_positions(trades)
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from portfolio_tracker.services.constants import ZERO
from portfolio_tracker.services.positions.types import (
    AssetPosition,
    BuyLot,
    PortfolioTotals,
    RealizedGain,
    TradeExecution,
)

logger = logging.getLogger(__name__)


class FIFOPositionCalculator:
    """
    Calculates FIFO cost basis and realized gains.

    Cost basis (BUY):
        lot.cost_per_share = (quantity × price + fees + commission) / quantity

    Realized gain (SELL, per matched lot):
        gain = matched × sell_price - matched × lot.cost_per_share
               - sell_fees × (matched / sell_quantity)

    Note:
        Selling more than is held is not supported as a short position.
        The unmatched quantity is reported in AssetPosition.warnings and
        the current quantity is clamped to zero.
    """

    def calculate_asset_position(
            self,
            trades: Iterable[TradeExecution],
    ) -> AssetPosition | None:
        """
        Calculate the position for a single asset from its trade history.

        Args:
            trades: All trades of ONE asset, in any order

        Returns:
            AssetPosition, or None if there are no trades
        """
        # sorted() is stable: same-timestamp trades keep their input order
        sorted_trades = sorted(trades, key=lambda t: t.trade_date)
        if not sorted_trades:
            return None

        first_trade = sorted_trades[0]
        buys = [t for t in sorted_trades if t.is_buy]
        sells = [t for t in sorted_trades if not t.is_buy]

        lots: deque[BuyLot] = deque(BuyLot.from_trade(buy) for buy in buys)
        realized_gains: list[RealizedGain] = []
        warnings: list[str] = []
        short_quantity = ZERO

        for sell in sells:
            unmatched = self._match_sell(sell, lots, realized_gains)
            if unmatched > ZERO:
                short_quantity += unmatched
                message = (
                    f"Asset {first_trade.symbol} has short position of {unmatched} "
                    f"shares after sell {sell.id}"
                )
                logger.warning(message)
                warnings.append(message)

        total_bought = sum((t.quantity for t in buys), ZERO)
        total_sold = sum((t.quantity for t in sells), ZERO)
        current_quantity = max(ZERO, total_bought - total_sold)

        total_cost_basis = sum((lot.remaining_cost_basis for lot in lots), ZERO)
        average_cost_per_share = (
            total_cost_basis / current_quantity if current_quantity > ZERO else ZERO
        )

        return AssetPosition(
            isin=first_trade.isin,
            symbol=first_trade.symbol,
            name=first_trade.name,
            asset_class=first_trade.asset_class,
            currency=first_trade.currency,
            total_bought=total_bought,
            total_sold=total_sold,
            current_quantity=current_quantity,
            total_cost_basis=total_cost_basis,
            average_cost_per_share=average_cost_per_share,
            total_buy_value=sum((t.total_value for t in buys), ZERO),
            total_sell_value=sum((t.total_value for t in sells), ZERO),
            total_fees_and_commissions=sum((t.total_fees for t in sorted_trades), ZERO),
            total_realized_gain=sum((g.realized_gain for g in realized_gains), ZERO),
            realized_gains=tuple(realized_gains),
            # Snapshot the lots so the result doesn't share mutable state
            remaining_lots=tuple(replace(lot) for lot in lots if not lot.is_depleted),
            first_trade_date=first_trade.trade_date,
            last_trade_date=sorted_trades[-1].trade_date,
            trade_count=len(sorted_trades),
            short_quantity=short_quantity,
            warnings=tuple(warnings),
        )

    @staticmethod
    def _match_sell(
            sell: TradeExecution,
            lots: deque[BuyLot],
            realized_gains: list[RealizedGain],
    ) -> Decimal:
        """
        Consume lots for one sell, oldest first.

        Depleted lots are popped from the queue. Returns the sell quantity
        that could not be matched (> 0 means an attempted short).
        """
        remaining = sell.quantity
        sell_fees = sell.total_fees

        while remaining > ZERO and lots:
            lot = lots[0]
            if lot.is_depleted:
                lots.popleft()
                continue

            matched = min(remaining, lot.remaining_quantity)
            gross_proceeds = matched * sell.price
            cost_basis = matched * lot.cost_per_share
            allocated_fees = sell_fees * (matched / sell.quantity)

            realized_gains.append(RealizedGain(
                sell_trade_id=sell.id,
                buy_trade_id=lot.trade_id,
                quantity=matched,
                sell_price=sell.price,
                buy_price=lot.cost_per_share,
                gross_proceeds=gross_proceeds,
                cost_basis=cost_basis,
                allocated_fees=allocated_fees,
                realized_gain=gross_proceeds - cost_basis - allocated_fees,
                sell_date=sell.trade_date,
                buy_date=lot.trade_date,
                currency=sell.currency,
            ))

            lot.consume(matched)
            remaining -= matched

            if lot.is_depleted:
                lots.popleft()

        return remaining

    def calculate_portfolio_positions(
            self,
            all_trades: Iterable[TradeExecution],
    ) -> list[AssetPosition]:
        """
        Calculate open positions for every asset in a trade list.

        Trades are grouped by ISIN (the symbol can change over time).
        Fully closed positions are dropped.

        Returns:
            Open positions ordered by descending current quantity
        """
        trades_by_asset: dict[str, list[TradeExecution]] = defaultdict(list)
        for trade in all_trades:
            trades_by_asset[trade.asset_key].append(trade)

        positions: list[AssetPosition] = []
        for trades in trades_by_asset.values():
            position = self.calculate_asset_position(trades)
            if position is not None and position.has_position:
                positions.append(position)

        return sorted(positions, key=lambda p: p.current_quantity, reverse=True)

    @staticmethod
    def get_realized_gains_for_period(
            positions: Iterable[AssetPosition],
            start_date: datetime,
            end_date: datetime,
    ) -> list[RealizedGain]:
        """
        Realized gains whose sell date falls in [start_date, end_date].

        Returns:
            Gains from all positions, most recent sell first
        """
        gains = [
            gain
            for position in positions
            for gain in position.realized_gains
            if start_date <= gain.sell_date <= end_date
        ]
        return sorted(gains, key=lambda g: g.sell_date, reverse=True)

    @staticmethod
    def calculate_portfolio_totals(positions: Iterable[AssetPosition]) -> PortfolioTotals:
        positions = list(positions)
        return PortfolioTotals(
            total_invested=sum((p.total_cost_basis for p in positions), ZERO),
            total_realized_gains=sum((p.total_realized_gain for p in positions), ZERO),
            total_fees_and_commissions=sum((p.total_fees_and_commissions for p in positions), ZERO),
            position_count=len(positions),
            total_shares=sum((p.current_quantity for p in positions), ZERO),
        )
