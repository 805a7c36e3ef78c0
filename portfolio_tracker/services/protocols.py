# portfolio_tracker/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- PriceService satisfies the protocol without inheriting from it
- Test doubles work without explicit inheritance
- Clear documentation of what the aggregator needs
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Iterable, Protocol

if TYPE_CHECKING:
    from portfolio_tracker.services.prices.types import (
        PortfolioPositionRef,
        PricedPosition,
        PriceRequest,
        PriceResponse,
    )


class PriceServiceProtocol(Protocol):
    """Interface required by PortfolioAggregator."""

    def get_current_price(
        self,
        request: PriceRequest,
        cancel_event: threading.Event | None = None,
    ) -> PriceResponse:
        ...

    def enrich_portfolio_positions(
        self,
        positions: Iterable[PortfolioPositionRef],
    ) -> list[PricedPosition]:
        ...
