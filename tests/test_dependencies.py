# tests/test_dependencies.py
"""Tests for the service factories."""

from decimal import Decimal

import pytest

from portfolio_tracker.config import Settings
from portfolio_tracker.dependencies import (
    create_circuit_breaker,
    create_portfolio_aggregator,
    create_price_service,
    create_providers,
)
from portfolio_tracker.models import PriceErrorCode, TradeDirection
from portfolio_tracker.services.exceptions import TickerNotFoundError
from portfolio_tracker.services.prices import (
    MockPriceProvider,
    PriceRequest,
    RateLimitConfig,
    YahooFinancePriceProvider,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, enabled_providers=["mock"])


class TestCreateProviders:

    def test_default_mock_only(self, settings):
        (provider,) = create_providers(settings)

        assert isinstance(provider, MockPriceProvider)
        assert provider.priority == 999

    def test_yahoo_and_mock_with_overrides(self):
        settings = Settings(
            _env_file=None,
            enabled_providers=["mock", "yahoo"],
            provider_priorities={"mock": 1},
            provider_rate_limits={"yahoo": "50/minute"},
            circuit_breaker_failure_threshold=2,
        )

        mock, yahoo = create_providers(settings)

        assert isinstance(yahoo, YahooFinancePriceProvider)
        assert mock.priority == 1
        assert yahoo.priority == 10
        assert yahoo.get_config().rate_limit == RateLimitConfig(requests_per_minute=50)
        assert yahoo.circuit_breaker.failure_threshold == 2

    def test_unknown_provider(self):
        settings = Settings(_env_file=None, enabled_providers=["bloomberg"])

        with pytest.raises(ValueError, match="Unknown price provider 'bloomberg'"):
            create_providers(settings)

    def test_breaker_excludes_permanent_errors(self, settings):
        breaker = create_circuit_breaker("mock", settings)

        assert TickerNotFoundError in breaker.excluded_exceptions
        assert breaker.failure_window == settings.circuit_breaker_failure_window


class TestCreatePriceService:

    def test_wires_cache_and_currency(self):
        settings = Settings(_env_file=None, default_currency="EUR", price_cache_ttl_seconds=30)

        with create_price_service(settings) as service:
            assert service.default_currency == "EUR"
            assert service.cache.stats()["ttl_seconds"] == 30

            response = service.get_current_price(PriceRequest("AAPL"))

        assert response.success
        assert response.provider == "mock"
        assert response.data.currency == "EUR"

    def test_mock_uses_configured_fx_rates(self):
        settings = Settings(
            _env_file=None,
            enabled_providers=["mock"],
            default_currency="EUR",
            fx_rates={"USD/EUR": "0.5"},
        )

        with create_price_service(settings) as service:
            response = service.get_current_price(PriceRequest("AAPL"))

        assert response.data.price == Decimal("89.125")

    def test_mock_without_rate_for_pair_fails(self):
        settings = Settings(
            _env_file=None,
            enabled_providers=["mock"],
            default_currency="EUR",
            fx_rates={"GBP/USD": "1.27"},
        )

        with create_price_service(settings) as service:
            response = service.get_current_price(PriceRequest("AAPL"))

        assert not response.success
        assert response.provider_errors == {"mock": PriceErrorCode.API_ERROR}


class TestCreatePortfolioAggregator:

    def test_end_to_end_with_mock_prices(self, settings, trade_factory):
        trades = [
            trade_factory(quantity="10", price="150"),
            trade_factory(TradeDirection.SELL, quantity="4", price="170"),
        ]

        with create_price_service(settings) as service:
            aggregator = create_portfolio_aggregator(service)
            summary = aggregator.get_portfolio_summary(trades)

        assert summary.position_count == 1
        assert summary.total_shares == Decimal("6")
        assert summary.total_market_value == Decimal("6") * Decimal("178.25")
        assert summary.total_realized_gain == Decimal("80")
        assert summary.positions_without_prices == 0
