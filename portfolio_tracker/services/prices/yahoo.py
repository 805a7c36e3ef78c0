# portfolio_tracker/services/prices/yahoo.py
"""
Yahoo Finance price provider.

Implements PriceProvider on top of the yfinance library. Yahoo Finance
is a free data source suitable for personal use.

Key features:
- Last price and previous close from Ticker.fast_info (no full info scrape)
- ISIN identifiers passed through; yfinance resolves them to a ticker
- Quotes converted into the requested currency with fixed FX rates
- Retry, rate limiting and circuit breaking inherited from the base class

Limitations:
- Rate limits exist but are not documented
- Quotes may be delayed 15-20 minutes for some markets
"""

import logging
import math
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

import yfinance as yf

from portfolio_tracker.models import IdentifierType
from portfolio_tracker.services.constants import HUNDRED, YAHOO_PROVIDER_PRIORITY, ZERO
from portfolio_tracker.services.exceptions import (
    InvalidSymbolError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from portfolio_tracker.services.prices.base import PriceProvider
from portfolio_tracker.services.prices.cache import utcnow
from portfolio_tracker.services.prices.fx import FixedRateConverter
from portfolio_tracker.services.prices.types import PriceData, PriceRequest

logger = logging.getLogger(__name__)

ISIN_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{9}[0-9]$")
SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.\-^=]{1,20}$")

# Yahoo quotes London listings in pence
MINOR_UNIT_CURRENCIES: dict[str, tuple[str, Decimal]] = {
    "GBP": ("GBP", HUNDRED),
    "GBX": ("GBP", HUNDRED),
    "ZAC": ("ZAR", HUNDRED),
    "ILA": ("ILS", HUNDRED),
}


class YahooFinancePriceProvider(PriceProvider):
    """
    Yahoo Finance implementation of PriceProvider.

    Configuration:
        converter: Fixed FX rates for quotes in another currency than requested

    Retry Behavior (inherited from PriceProvider):
        - Retries on ProviderUnavailableError
        - Does NOT retry on TickerNotFoundError, InvalidSymbolError or RateLimitError
        - Exponential backoff: 1s → 2s → 4s, maximum 3 attempts

    Example:
        provider = YahooFinancePriceProvider(converter=FixedRateConverter(rates))
        quote = provider.get_current_price(PriceRequest("NVDA", currency="USD"))
        print(quote.price)
    """

    DEFAULT_PRIORITY = YAHOO_PROVIDER_PRIORITY

    def __init__(
            self,
            converter: FixedRateConverter | None = None,
            clock: Callable[[], datetime] = utcnow,
            **kwargs: Any,
    ) -> None:
        self._converter = converter or FixedRateConverter()
        self._clock = clock
        super().__init__(**kwargs)
        logger.info(f"YahooFinancePriceProvider initialized (priority={self.priority})")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # PRICE LOOKUP
    # =========================================================================

    def _fetch_current_price(self, request: PriceRequest) -> PriceData:
        """Internal method to fetch one quote (called by the retry wrapper)."""
        yahoo_symbol = self._build_yahoo_symbol(request)
        logger.debug(f"Fetching current price for {yahoo_symbol}")

        try:
            yf_ticker = yf.Ticker(yahoo_symbol)
            fast_info = yf_ticker.fast_info

            last_price = self._to_decimal(fast_info.last_price)
            if last_price is None or last_price <= ZERO:
                raise TickerNotFoundError(request.identifier, self.name)

            previous_close = self._to_decimal(fast_info.previous_close)
            quote_currency = (fast_info.currency or request.currency or "USD")
            resolved_symbol = str(getattr(yf_ticker, "ticker", yahoo_symbol) or yahoo_symbol)

        except TickerNotFoundError:
            raise
        except Exception as e:
            error_str = str(e).lower()
            if "not found" in error_str or "no data" in error_str or "delisted" in error_str:
                raise TickerNotFoundError(request.identifier, self.name)
            if "rate limit" in error_str or "too many requests" in error_str:
                raise RateLimitError(provider=self.name)

            logger.error(f"Yahoo Finance error for {yahoo_symbol}: {e}")
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

        return self._build_price_data(
            request,
            symbol=resolved_symbol.upper(),
            last_price=last_price,
            previous_close=previous_close,
            quote_currency=quote_currency,
        )

    def _build_price_data(
            self,
            request: PriceRequest,
            symbol: str,
            last_price: Decimal,
            previous_close: Decimal | None,
            quote_currency: str,
    ) -> PriceData:
        """Normalize minor units and convert into the requested currency."""
        quote_currency, divisor = self._normalize_currency(quote_currency)
        last_price = last_price / divisor
        if previous_close is not None:
            previous_close = previous_close / divisor

        target_currency = (request.currency or quote_currency).upper()
        rate = self._converter.get_rate(quote_currency, target_currency)
        price = last_price * rate

        change = None
        change_percent = None
        if previous_close is not None and previous_close > ZERO:
            previous_close = previous_close * rate
            change = price - previous_close
            change_percent = change / previous_close * HUNDRED
        else:
            previous_close = None

        return PriceData(
            identifier=request.identifier,
            identifier_type=request.identifier_type,
            symbol=symbol,
            name=symbol,
            price=price,
            currency=target_currency,
            timestamp=self._clock(),
            change=change,
            change_percent=change_percent,
            previous_close=previous_close,
        )

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _build_yahoo_symbol(self, request: PriceRequest) -> str:
        """
        Validate the identifier and return what yf.Ticker() should get.

        Raises:
            InvalidSymbolError: Identifier can't be a valid ISIN/ticker
        """
        identifier = request.identifier.strip().upper()

        if request.identifier_type == IdentifierType.ISIN:
            if not ISIN_PATTERN.match(identifier):
                raise InvalidSymbolError(request.identifier, self.name, "not a valid ISIN")
            return identifier

        if not SYMBOL_PATTERN.match(identifier):
            raise InvalidSymbolError(request.identifier, self.name, "not a valid ticker")
        return identifier

    @staticmethod
    def _normalize_currency(currency: str) -> tuple[str, Decimal]:
        """
        Map Yahoo's minor-unit codes to (ISO code, divisor).

        "GBp" (pence) -> ("GBP", 100); everything else -> (upper, 1).
        """
        if currency != currency.upper() or currency.upper() in ("GBX", "ZAC", "ILA"):
            mapped = MINOR_UNIT_CURRENCIES.get(currency.upper())
            if mapped is not None:
                return mapped
        return currency.upper(), Decimal("1")

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value))
        except (TypeError, ValueError):
            return None

    def _config_options(self) -> dict[str, Any]:
        return {
            "description": "Yahoo Finance via yfinance",
            "supported_identifiers": [t.value for t in IdentifierType],
        }
