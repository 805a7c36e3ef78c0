# portfolio_tracker/services/prices/fx.py
"""
Fixed-rate currency conversion for price providers.

Rates come from configuration (Settings.fx_rates); sourcing live FX rates
is out of scope. A configured "USD/EUR" rate also answers EUR/USD via its
inverse unless that pair is configured explicitly.
"""

import logging
from decimal import Decimal
from typing import Mapping

from portfolio_tracker.services.exceptions import FXConversionError

logger = logging.getLogger(__name__)

ONE = Decimal("1")


class FixedRateConverter:
    """
    Converts amounts using a static table of rates.

    A rate for "BASE/QUOTE" is the number of QUOTE units per BASE unit,
    so amount_in_quote = amount_in_base × rate.
    """

    def __init__(self, rates: Mapping[str, Decimal] | None = None) -> None:
        self._rates: dict[tuple[str, str], Decimal] = {}
        for pair, rate in (rates or {}).items():
            base, _, quote = pair.upper().partition("/")
            self._rates[(base, quote)] = Decimal(rate)

    def get_rate(self, base_currency: str, quote_currency: str) -> Decimal:
        """
        Rate to convert from base_currency into quote_currency.

        Raises:
            FXConversionError: No direct or inverse rate is configured
        """
        base = base_currency.upper()
        quote = quote_currency.upper()
        if base == quote:
            return ONE

        rate = self._rates.get((base, quote))
        if rate is not None:
            return rate

        inverse = self._rates.get((quote, base))
        if inverse is not None:
            return ONE / inverse

        raise FXConversionError(base, quote, "no rate configured")

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        return amount * self.get_rate(from_currency, to_currency)

    def supports(self, from_currency: str, to_currency: str) -> bool:
        try:
            self.get_rate(from_currency, to_currency)
        except FXConversionError:
            return False
        return True
