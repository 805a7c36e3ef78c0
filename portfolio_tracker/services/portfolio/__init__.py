# portfolio_tracker/services/portfolio/__init__.py
"""
Portfolio aggregation: enriched positions, summary, timeline, filters.

Usage:
    from portfolio_tracker.services.portfolio import PortfolioAggregator
"""

from portfolio_tracker.services.portfolio.aggregator import PortfolioAggregator
from portfolio_tracker.services.portfolio.filters import PortfolioFilter, apply_filters
from portfolio_tracker.services.portfolio.types import (
    CurrencyBreakdown,
    EnrichedPosition,
    PortfolioSummary,
    TimelinePoint,
)

__all__ = [
    "PortfolioAggregator",
    "PortfolioFilter",
    "apply_filters",
    "EnrichedPosition",
    "CurrencyBreakdown",
    "PortfolioSummary",
    "TimelinePoint",
]
