# portfolio_tracker/schemas/__init__.py
"""
Pydantic schemas for trade input and portfolio output.

This package contains all Pydantic schemas organized by domain:
- trades: TRADE_EXECUTED event payloads and conversion to TradeExecution
- portfolio: Enriched positions, summary, timeline and filter parameters
- validators: Reusable validation functions (symbol, ISIN, currency, dates)

Usage:
    from portfolio_tracker.schemas import TradeEvent, trades_from_events
    from portfolio_tracker.schemas import PortfolioSummarySchema
"""

from portfolio_tracker.schemas.portfolio import (
    BuyLotSchema,
    CurrencyBreakdownSchema,
    EnrichedPositionSchema,
    PortfolioFilterParams,
    PortfolioSummarySchema,
    RealizedGainSchema,
    TimelinePointSchema,
)
from portfolio_tracker.schemas.trades import (
    TradeEvent,
    TradeExecutedPayload,
    trade_from_event,
    trades_from_events,
)

__all__ = [
    # Trades
    "TradeExecutedPayload",
    "TradeEvent",
    "trade_from_event",
    "trades_from_events",
    # Portfolio
    "BuyLotSchema",
    "RealizedGainSchema",
    "EnrichedPositionSchema",
    "CurrencyBreakdownSchema",
    "PortfolioSummarySchema",
    "TimelinePointSchema",
    "PortfolioFilterParams",
]
