# portfolio_tracker/services/positions/__init__.py
"""
FIFO position calculation.

Usage:
    from portfolio_tracker.services.positions import (
        FIFOPositionCalculator,
        TradeExecution,
        AssetPosition,
    )
"""

from portfolio_tracker.services.positions.calculator import FIFOPositionCalculator
from portfolio_tracker.services.positions.types import (
    AssetPosition,
    BuyLot,
    PortfolioTotals,
    RealizedGain,
    TradeExecution,
)

__all__ = [
    "FIFOPositionCalculator",
    "TradeExecution",
    "BuyLot",
    "RealizedGain",
    "AssetPosition",
    "PortfolioTotals",
]
