# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Trade and quote factories
- A configurable fake price provider
- A controllable clock for TTL tests
"""

import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable

import pytest

from portfolio_tracker.models import AssetClass, IdentifierType, TradeDirection
from portfolio_tracker.services.exceptions import TickerNotFoundError
from portfolio_tracker.services.positions.types import TradeExecution
from portfolio_tracker.services.prices.base import PriceProvider
from portfolio_tracker.services.prices.types import PriceData, PriceRequest


BASE_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# CLOCK
# =============================================================================

class FakeClock:
    """Callable clock returning aware datetimes; advance() moves it forward."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

_trade_counter = 0


def make_trade(
        direction: TradeDirection | str = TradeDirection.BUY,
        quantity: str | Decimal = "100",
        price: str | Decimal = "150",
        trade_date: datetime | None = None,
        fees: str | Decimal = "0",
        commission: str | Decimal = "0",
        symbol: str = "AAPL",
        isin: str = "US0378331005",
        currency: str = "USD",
        asset_class: AssetClass = AssetClass.STOCK,
        name: str = "",
        trade_id: str | None = None,
) -> TradeExecution:
    """Build a TradeExecution with sensible defaults."""
    global _trade_counter
    _trade_counter += 1
    return TradeExecution(
        id=trade_id or f"trade-{_trade_counter}",
        isin=isin,
        symbol=symbol,
        name=name,
        asset_class=asset_class,
        direction=TradeDirection(direction),
        quantity=Decimal(quantity),
        price=Decimal(price),
        fees=Decimal(fees),
        commission=Decimal(commission),
        currency=currency,
        trade_date=trade_date or BASE_TIME,
    )


def make_price_data(
        identifier: str = "AAPL",
        price: str | Decimal = "180",
        currency: str = "USD",
        identifier_type: IdentifierType = IdentifierType.SYMBOL,
        change: str | Decimal | None = None,
        change_percent: str | Decimal | None = None,
        timestamp: datetime | None = None,
) -> PriceData:
    """Build a PriceData quote."""
    return PriceData(
        identifier=identifier,
        identifier_type=identifier_type,
        symbol=identifier,
        name=identifier,
        price=Decimal(price),
        currency=currency,
        timestamp=timestamp or BASE_TIME,
        change=Decimal(change) if change is not None else None,
        change_percent=Decimal(change_percent) if change_percent is not None else None,
    )


@pytest.fixture
def trade_factory() -> Callable[..., TradeExecution]:
    return make_trade


@pytest.fixture
def price_data_factory() -> Callable[..., PriceData]:
    return make_price_data


# =============================================================================
# FAKE PRICE PROVIDER
# =============================================================================

class FakePriceProvider(PriceProvider):
    """
    Configurable PriceProvider for testing.

    Prices are keyed by identifier and returned in whatever currency the
    request asks for. Identifiers without a price or an error raise
    TickerNotFoundError.
    """

    MAX_RETRY_ATTEMPTS = 1

    def __init__(
            self,
            name: str = "fake",
            prices: dict[str, str | Decimal] | None = None,
            errors: dict[str, Exception] | None = None,
            available: bool = True,
            delay_seconds: float = 0.0,
            changes: dict[str, str | Decimal] | None = None,
            **kwargs: Any,
    ):
        self._name = name
        self._prices = {k: Decimal(v) for k, v in (prices or {}).items()}
        self._changes = {k: Decimal(v) for k, v in (changes or {}).items()}
        self._errors = dict(errors or {})
        self.available = available
        self.delay_seconds = delay_seconds
        self.calls: list[PriceRequest] = []
        self.batch_calls: list[list[PriceRequest]] = []
        super().__init__(**kwargs)

    @property
    def name(self) -> str:
        return self._name

    def set_price(self, identifier: str, price: str | Decimal) -> None:
        self._prices[identifier] = Decimal(price)

    def set_error(self, identifier: str, error: Exception) -> None:
        self._errors[identifier] = error

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def is_available(self) -> bool:
        return self.available

    def get_batch_prices(
            self,
            requests: list[PriceRequest],
            on_result: Callable[[PriceData], None] | None = None,
    ) -> list[PriceData]:
        self.batch_calls.append(list(requests))
        return super().get_batch_prices(requests, on_result)

    def _fetch_current_price(self, request: PriceRequest) -> PriceData:
        self.calls.append(request)
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        if request.identifier in self._errors:
            raise self._errors[request.identifier]
        if request.identifier not in self._prices:
            raise TickerNotFoundError(request.identifier, self.name)

        change = self._changes.get(request.identifier)
        return PriceData(
            identifier=request.identifier,
            identifier_type=request.identifier_type,
            symbol=request.identifier,
            name=f"{request.identifier} ({self.name})",
            price=self._prices[request.identifier],
            currency=request.currency or "USD",
            timestamp=BASE_TIME,
            change=change,
        )


@pytest.fixture
def fake_provider_class() -> type[FakePriceProvider]:
    return FakePriceProvider
