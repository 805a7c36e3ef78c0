# portfolio_tracker/services/portfolio/filters.py
"""Trade filters applied before aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable

from portfolio_tracker.models import AssetClass
from portfolio_tracker.services.positions.types import TradeExecution


@dataclass(frozen=True)
class PortfolioFilter:
    """
    Criteria for selecting trades.

    Attributes:
        q: Case-insensitive substring of symbol, name or ISIN
        asset_class: Only this asset class (None = all)
        date_from / date_to: Inclusive range on the trade's UTC calendar date
    """

    q: str | None = None
    asset_class: AssetClass | None = None
    date_from: date | None = None
    date_to: date | None = None

    @property
    def is_empty(self) -> bool:
        return not self.q and self.asset_class is None and self.date_from is None and self.date_to is None

    def matches(self, trade: TradeExecution) -> bool:
        if self.q:
            query = self.q.lower()
            if not any(query in value.lower() for value in (trade.symbol, trade.name, trade.isin) if value):
                return False

        if self.asset_class is not None and trade.asset_class != self.asset_class:
            return False

        if self.date_from is not None or self.date_to is not None:
            trade_day = _utc_date(trade.trade_date)
            if self.date_from is not None and trade_day < self.date_from:
                return False
            if self.date_to is not None and trade_day > self.date_to:
                return False

        return True


def _utc_date(moment: datetime) -> date:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def apply_filters(
        trades: Iterable[TradeExecution],
        portfolio_filter: PortfolioFilter | None,
) -> list[TradeExecution]:
    """Trades matching every criterion, in input order."""
    if portfolio_filter is None or portfolio_filter.is_empty:
        return list(trades)
    return [trade for trade in trades if portfolio_filter.matches(trade)]
