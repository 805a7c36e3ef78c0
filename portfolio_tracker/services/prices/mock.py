# portfolio_tracker/services/prices/mock.py
"""
Deterministic price provider for development and tests.

Serves a fixed table of quotes for well-known US/European stocks and
ETFs. It has the lowest priority, so with real providers configured it
only answers when all of them failed.
"""

import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from portfolio_tracker.models import IdentifierType
from portfolio_tracker.services.constants import HUNDRED, MOCK_PROVIDER_PRIORITY, ZERO
from portfolio_tracker.services.exceptions import TickerNotFoundError
from portfolio_tracker.services.prices.base import PriceProvider
from portfolio_tracker.services.prices.cache import utcnow
from portfolio_tracker.services.prices.fx import FixedRateConverter
from portfolio_tracker.services.prices.types import PriceData, PriceRequest, RateLimitConfig

logger = logging.getLogger(__name__)


# symbol -> (price, name, daily change, quote currency)
MOCK_PRICES: dict[str, tuple[Decimal, str, Decimal, str]] = {
    # US Stocks
    "AAPL": (Decimal("178.25"), "Apple Inc.", Decimal("2.15"), "USD"),
    "MSFT": (Decimal("384.52"), "Microsoft Corporation", Decimal("-1.28"), "USD"),
    "GOOGL": (Decimal("141.83"), "Alphabet Inc.", Decimal("0.95"), "USD"),
    "AMZN": (Decimal("153.46"), "Amazon.com Inc.", Decimal("-2.31"), "USD"),
    "TSLA": (Decimal("248.87"), "Tesla Inc.", Decimal("8.42"), "USD"),
    "NVDA": (Decimal("875.34"), "NVIDIA Corporation", Decimal("12.67"), "USD"),
    "META": (Decimal("512.18"), "Meta Platforms Inc.", Decimal("3.87"), "USD"),
    "NFLX": (Decimal("487.23"), "Netflix Inc.", Decimal("-5.12"), "USD"),

    # European Stocks
    "SAP": (Decimal("142.75"), "SAP SE", Decimal("1.45"), "EUR"),
    "ASML": (Decimal("683.20"), "ASML Holding NV", Decimal("-8.30"), "EUR"),
    "NESN": (Decimal("104.32"), "Nestlé S.A.", Decimal("0.78"), "EUR"),

    # ETFs
    "VOO": (Decimal("445.67"), "Vanguard S&P 500 ETF", Decimal("1.23"), "USD"),
    "QQQ": (Decimal("385.92"), "Invesco QQQ Trust", Decimal("2.87"), "USD"),
    "VTI": (Decimal("242.18"), "Vanguard Total Stock Market ETF", Decimal("0.94"), "USD"),
    "SPY": (Decimal("445.89"), "SPDR S&P 500 ETF Trust", Decimal("1.21"), "USD"),
}

ISIN_TO_SYMBOL: dict[str, str] = {
    "US0378331005": "AAPL",
    "US5949181045": "MSFT",
    "US02079K3059": "GOOGL",
    "US0231351067": "AMZN",
    "US88160R1014": "TSLA",
    "US67066G1040": "NVDA",
    "US30303M1027": "META",
    "DE0007164600": "SAP",
    "NL0010273215": "ASML",
}

MOCK_FX_RATES: dict[str, Decimal] = {
    "EUR/USD": Decimal("1.085"),
    "USD/EUR": Decimal("0.922"),
}


class MockPriceProvider(PriceProvider):
    """
    Price provider backed by MOCK_PRICES.

    Quotes are converted into the requested currency with fixed rates;
    previous_close and change_percent are derived from the converted
    price and change.

    Example:
        provider = MockPriceProvider()
        quote = provider.get_current_price(PriceRequest("AAPL"))
    """

    DEFAULT_PRIORITY = MOCK_PROVIDER_PRIORITY
    DEFAULT_RATE_LIMIT = RateLimitConfig(requests_per_minute=1000)

    def __init__(
            self,
            converter: FixedRateConverter | None = None,
            delay_seconds: float = 0.0,
            clock: Callable[[], datetime] = utcnow,
            **kwargs: Any,
    ) -> None:
        """
        Args:
            converter: FX rates (default: MOCK_FX_RATES)
            delay_seconds: Simulated network latency per lookup
            clock: Source of quote timestamps
            **kwargs: Passed to PriceProvider (priority, rate_limit, ...)
        """
        self._converter = converter or FixedRateConverter(MOCK_FX_RATES)
        self._delay_seconds = delay_seconds
        self._clock = clock
        super().__init__(**kwargs)
        logger.info(f"MockPriceProvider initialized (priority={self.priority})")

    @property
    def name(self) -> str:
        return "mock"

    def _fetch_current_price(self, request: PriceRequest) -> PriceData:
        if self._delay_seconds:
            time.sleep(self._delay_seconds)

        symbol = self._resolve_symbol(request)
        entry = MOCK_PRICES.get(symbol)
        if entry is None:
            raise TickerNotFoundError(request.identifier, self.name)

        base_price, name, base_change, quote_currency = entry
        currency = (request.currency or quote_currency).upper()

        price = self._converter.convert(base_price, quote_currency, currency)
        change = self._converter.convert(base_change, quote_currency, currency)
        previous_close = price - change
        change_percent = change / previous_close * HUNDRED if previous_close != ZERO else ZERO

        return PriceData(
            identifier=request.identifier,
            identifier_type=request.identifier_type,
            symbol=symbol,
            name=name,
            price=price,
            currency=currency,
            timestamp=self._clock(),
            change=change,
            change_percent=change_percent,
            previous_close=previous_close,
        )

    @staticmethod
    def _resolve_symbol(request: PriceRequest) -> str:
        if request.identifier_type == IdentifierType.ISIN:
            # Unknown ISINs fall through as-is and miss the price table
            return ISIN_TO_SYMBOL.get(request.identifier.upper(), request.identifier.upper())
        return request.identifier.strip().upper()

    def _config_options(self) -> dict[str, Any]:
        return {
            "description": "Mock provider for development and testing",
            "supported_currencies": ["USD", "EUR"],
            "supported_identifiers": [t.value for t in IdentifierType],
        }
