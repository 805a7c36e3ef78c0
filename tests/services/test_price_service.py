# tests/services/test_price_service.py
"""
Tests for PriceService.

This module tests:
- Cache-first lookups (one provider call per key within the TTL)
- Provider fallback in priority order
- Health check and circuit breaker skipping
- Rate limit fall-through
- Failure reporting (NOT_FOUND plus per-provider codes)
- Batch lookups and portfolio enrichment
- Per-provider timeouts and cancellation
"""

import threading
import time
from decimal import Decimal

import pytest

from portfolio_tracker.models import IdentifierType, PriceErrorCode
from portfolio_tracker.services.circuit_breaker import CircuitBreaker
from portfolio_tracker.services.constants import PRICE_NOT_AVAILABLE
from portfolio_tracker.services.exceptions import ProviderUnavailableError
from portfolio_tracker.services.prices import (
    PortfolioPositionRef,
    PriceCache,
    PriceRequest,
    PriceService,
)


@pytest.fixture
def make_service():
    """Build PriceService instances and shut their executors down afterwards."""
    services = []

    def _make(providers, **kwargs):
        service = PriceService(providers=providers, **kwargs)
        services.append(service)
        return service

    yield _make

    for service in services:
        service.close()


# =============================================================================
# SINGLE LOOKUP
# =============================================================================

class TestCacheFirst:
    """Repeated lookups within the TTL hit the cache."""

    def test_second_lookup_served_from_cache(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"AAPL": "180"})
        service = make_service([provider])

        first = service.get_current_price(PriceRequest("AAPL"))
        second = service.get_current_price(PriceRequest("AAPL"))

        assert provider.call_count == 1
        assert first.success and not first.from_cache
        assert first.provider == "fake"
        assert second.success and second.from_cache
        assert second.provider is None
        assert second.data == first.data

    def test_failures_are_not_cached(self, make_service, fake_provider_class):
        provider = fake_provider_class()
        service = make_service([provider])

        assert not service.get_current_price(PriceRequest("AAPL")).success

        provider.set_price("AAPL", "180")
        response = service.get_current_price(PriceRequest("AAPL"))

        assert response.success
        assert provider.call_count == 2

    def test_expired_entry_refetched(self, make_service, fake_provider_class, clock):
        provider = fake_provider_class(prices={"AAPL": "180"})
        service = make_service([provider], cache=PriceCache(ttl_seconds=60, clock=clock))

        service.get_current_price(PriceRequest("AAPL"))
        clock.advance(60)
        response = service.get_current_price(PriceRequest("AAPL"))

        assert not response.from_cache
        assert provider.call_count == 2

    def test_default_currency_applied(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"SAP": "140"})
        service = make_service([provider], default_currency="eur")

        response = service.get_current_price(PriceRequest("SAP"))

        assert response.data.currency == "EUR"
        assert provider.calls[0].currency == "EUR"
        assert service.default_currency == "EUR"

    def test_currencies_cached_separately(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"AAPL": "180"})
        service = make_service([provider])

        service.get_current_price(PriceRequest("AAPL", currency="USD"))
        service.get_current_price(PriceRequest("AAPL", currency="EUR"))

        assert provider.call_count == 2


class TestProviderFallback:
    """Providers are tried in ascending priority until one delivers."""

    def test_providers_sorted_by_priority(self, make_service, fake_provider_class):
        low = fake_provider_class(name="low", priority=50)
        high = fake_provider_class(name="high", priority=1)
        service = make_service([low, high])

        assert [p.name for p in service.providers] == ["high", "low"]

    def test_equal_priority_keeps_given_order(self, make_service, fake_provider_class):
        first = fake_provider_class(name="first", priority=5)
        second = fake_provider_class(name="second", priority=5)
        service = make_service([first, second])

        assert [p.name for p in service.providers] == ["first", "second"]

    def test_falls_back_on_not_found(self, make_service, fake_provider_class):
        primary = fake_provider_class(name="primary", priority=1)
        backup = fake_provider_class(name="backup", priority=2, prices={"AAPL": "180"})
        service = make_service([primary, backup])

        response = service.get_current_price(PriceRequest("AAPL"))

        assert response.success
        assert response.provider == "backup"
        assert response.provider_errors == {"primary": PriceErrorCode.NOT_FOUND}

    def test_stops_at_first_success(self, make_service, fake_provider_class):
        primary = fake_provider_class(name="primary", priority=1, prices={"AAPL": "180"})
        backup = fake_provider_class(name="backup", priority=2, prices={"AAPL": "999"})
        service = make_service([primary, backup])

        response = service.get_current_price(PriceRequest("AAPL"))

        assert response.data.price == Decimal("180")
        assert backup.call_count == 0

    def test_unhealthy_provider_skipped(self, make_service, fake_provider_class):
        down = fake_provider_class(name="down", priority=1, prices={"AAPL": "1"}, available=False)
        backup = fake_provider_class(name="backup", priority=2, prices={"AAPL": "180"})
        service = make_service([down, backup])

        response = service.get_current_price(PriceRequest("AAPL"))

        assert response.provider == "backup"
        assert down.call_count == 0
        assert response.provider_errors == {"down": PriceErrorCode.API_ERROR}

    def test_disabled_provider_skipped(self, make_service, fake_provider_class):
        disabled = fake_provider_class(name="off", priority=1, prices={"AAPL": "1"}, enabled=False)
        backup = fake_provider_class(name="backup", priority=2, prices={"AAPL": "180"})
        service = make_service([disabled, backup])

        assert service.get_current_price(PriceRequest("AAPL")).provider == "backup"
        assert disabled.call_count == 0

    def test_rate_limited_provider_falls_through(self, make_service, fake_provider_class):
        limited = fake_provider_class(
            name="limited", priority=1, prices={"AAPL": "180", "MSFT": "380"}, rate_limit="1/minute",
        )
        backup = fake_provider_class(name="backup", priority=2, prices={"MSFT": "381"})
        service = make_service([limited, backup])

        first = service.get_current_price(PriceRequest("AAPL"))
        second = service.get_current_price(PriceRequest("MSFT"))

        assert first.provider == "limited"
        assert second.provider == "backup"
        assert second.provider_errors == {"limited": PriceErrorCode.RATE_LIMITED}
        assert limited.call_count == 1

    def test_open_circuit_skips_provider(self, make_service, fake_provider_class):
        breaker = CircuitBreaker(name="flaky", failure_threshold=1, recovery_timeout=60)
        flaky = fake_provider_class(
            name="flaky",
            priority=1,
            errors={"AAPL": ProviderUnavailableError("flaky", "HTTP 503")},
            prices={"MSFT": "380"},
            circuit_breaker=breaker,
        )
        backup = fake_provider_class(name="backup", priority=2, prices={"AAPL": "180", "MSFT": "381"})
        service = make_service([flaky, backup])

        first = service.get_current_price(PriceRequest("AAPL"))
        second = service.get_current_price(PriceRequest("MSFT"))

        assert first.provider_errors == {"flaky": PriceErrorCode.NETWORK_ERROR}
        assert second.provider == "backup"
        assert second.provider_errors == {"flaky": PriceErrorCode.API_ERROR}
        assert flaky.call_count == 1


class TestFailureReporting:
    """When nobody delivers the service reports instead of raising."""

    def test_all_providers_fail(self, make_service, fake_provider_class):
        a = fake_provider_class(name="a", priority=1)
        b = fake_provider_class(
            name="b", priority=2, errors={"NOPE": ProviderUnavailableError("b", "connection reset")},
        )
        service = make_service([a, b])

        response = service.get_current_price(PriceRequest("NOPE"))

        assert not response.success
        assert response.data is None
        assert response.code == PriceErrorCode.NOT_FOUND
        assert "NOPE" in response.error
        assert response.provider_errors == {
            "a": PriceErrorCode.NOT_FOUND,
            "b": PriceErrorCode.NETWORK_ERROR,
        }

    def test_unexpected_exception_is_api_error(self, make_service, fake_provider_class):
        broken = fake_provider_class(name="broken", errors={"AAPL": RuntimeError("boom")})
        service = make_service([broken])

        response = service.get_current_price(PriceRequest("AAPL"))

        assert response.provider_errors == {"broken": PriceErrorCode.API_ERROR}

    def test_no_providers(self, make_service):
        service = make_service([])

        response = service.get_current_price(PriceRequest("AAPL"))

        assert not response.success
        assert response.code == PriceErrorCode.NOT_FOUND
        assert response.provider_errors == {}


# =============================================================================
# BATCH LOOKUP
# =============================================================================

class TestBatchPrices:
    """Batch lookups use the cache first, then each provider in turn."""

    def test_partial_results_across_providers(self, make_service, fake_provider_class):
        primary = fake_provider_class(name="primary", priority=1, prices={"AAPL": "180"})
        backup = fake_provider_class(name="backup", priority=2, prices={"MSFT": "380", "AAPL": "1"})
        service = make_service([primary, backup])

        batch = service.get_batch_prices([
            PriceRequest("AAPL"), PriceRequest("MSFT"), PriceRequest("NOPE"),
        ])

        assert batch.success
        prices = {d.identifier: d.price for d in batch.data}
        assert prices == {"AAPL": Decimal("180"), "MSFT": Decimal("380")}
        assert [r.identifier for r in batch.missing] == ["NOPE"]
        # The backup only sees what the primary couldn't resolve
        assert [r.identifier for r in backup.batch_calls[0]] == ["MSFT", "NOPE"]

    def test_cache_hits_skip_providers(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"AAPL": "180", "MSFT": "380"})
        service = make_service([provider])
        service.get_current_price(PriceRequest("AAPL"))

        batch = service.get_batch_prices([PriceRequest("AAPL"), PriceRequest("MSFT")])

        assert batch.cache_hits == 1
        assert batch.resolved_count == 2
        assert [r.identifier for r in provider.batch_calls[0]] == ["MSFT"]

    def test_all_cached_makes_no_provider_call(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"AAPL": "180"})
        service = make_service([provider])
        service.get_batch_prices([PriceRequest("AAPL")])

        batch = service.get_batch_prices([PriceRequest("AAPL")])

        assert batch.cache_hits == 1
        assert len(provider.batch_calls) == 1

    def test_unhealthy_provider_skipped(self, make_service, fake_provider_class):
        down = fake_provider_class(name="down", priority=1, prices={"AAPL": "1"}, available=False)
        backup = fake_provider_class(name="backup", priority=2, prices={"AAPL": "180"})
        service = make_service([down, backup])

        batch = service.get_batch_prices([PriceRequest("AAPL")])

        assert batch.data[0].price == Decimal("180")
        assert down.batch_calls == []

    def test_results_are_cached(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"AAPL": "180"})
        service = make_service([provider])
        service.get_batch_prices([PriceRequest("AAPL")])

        response = service.get_current_price(PriceRequest("AAPL"))

        assert response.from_cache

    def test_nothing_resolved(self, make_service, fake_provider_class):
        service = make_service([fake_provider_class()])

        batch = service.get_batch_prices([PriceRequest("X1"), PriceRequest("X2")])

        assert batch.success
        assert batch.data == []
        assert len(batch.missing) == 2


class TestEnrichPortfolioPositions:
    """Joining positions with a batch of quotes."""

    def test_isin_preferred_and_value_computed(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"US0378331005": "180", "XYZ": "10"})
        service = make_service([provider])
        positions = [
            PortfolioPositionRef(isin="US0378331005", symbol="AAPL", quantity=Decimal("10"), currency="USD"),
            PortfolioPositionRef(isin="", symbol="XYZ", quantity=Decimal("3"), currency="USD"),
        ]

        enriched = service.enrich_portfolio_positions(positions)

        assert provider.calls[0].identifier_type == IdentifierType.ISIN
        assert provider.calls[1].identifier_type == IdentifierType.SYMBOL
        assert enriched[0].current_value == Decimal("1800")
        assert enriched[1].current_value == Decimal("30")
        assert enriched[0].error is None

    def test_unpriced_position_reports_error(self, make_service, fake_provider_class):
        service = make_service([fake_provider_class()])
        position = PortfolioPositionRef(isin="", symbol="NOPE", quantity=Decimal("1"), currency="USD")

        enriched = service.enrich_portfolio_positions([position])

        assert enriched[0].price_data is None
        assert enriched[0].current_value is None
        assert enriched[0].error == PRICE_NOT_AVAILABLE


# =============================================================================
# TIMEOUTS AND CANCELLATION
# =============================================================================

class TestTimeoutsAndCancellation:
    """Slow or cancelled provider calls count as provider failures."""

    def test_slow_provider_times_out(self, make_service, fake_provider_class):
        slow = fake_provider_class(name="slow", priority=1, prices={"AAPL": "1"}, delay_seconds=1.0)
        fast = fake_provider_class(name="fast", priority=2, prices={"AAPL": "180"})
        service = make_service([slow, fast], provider_timeout_seconds=0.1)

        started = time.monotonic()
        response = service.get_current_price(PriceRequest("AAPL"))
        elapsed = time.monotonic() - started

        assert response.provider == "fast"
        assert response.provider_errors == {"slow": PriceErrorCode.NETWORK_ERROR}
        assert elapsed < 0.9

    def test_timed_out_result_not_cached(self, make_service, fake_provider_class):
        slow = fake_provider_class(name="slow", prices={"AAPL": "1"}, delay_seconds=0.3)
        service = make_service([slow], provider_timeout_seconds=0.05)

        response = service.get_current_price(PriceRequest("AAPL"))
        time.sleep(0.4)

        assert not response.success
        assert len(service.cache) == 0

    def test_cancel_before_start(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"AAPL": "180"})
        service = make_service([provider])
        cancel = threading.Event()
        cancel.set()

        response = service.get_current_price(PriceRequest("AAPL"), cancel_event=cancel)

        assert not response.success
        assert response.provider_errors == {"fake": PriceErrorCode.NETWORK_ERROR}
        assert provider.call_count == 0

    def test_cancel_while_waiting(self, make_service, fake_provider_class):
        slow = fake_provider_class(name="slow", prices={"AAPL": "1"}, delay_seconds=1.0)
        service = make_service([slow], provider_timeout_seconds=None)
        cancel = threading.Event()
        timer = threading.Timer(0.1, cancel.set)
        timer.start()

        started = time.monotonic()
        try:
            response = service.get_current_price(PriceRequest("AAPL"), cancel_event=cancel)
        finally:
            timer.cancel()
        elapsed = time.monotonic() - started

        assert not response.success
        assert response.provider_errors == {"slow": PriceErrorCode.NETWORK_ERROR}
        assert elapsed < 0.9

    def test_hung_provider_does_not_starve_fallback(self, make_service, fake_provider_class):
        """Abandoned calls on one provider never hold up the next one."""
        hung = fake_provider_class(name="hung", priority=1, delay_seconds=1.0)
        backup = fake_provider_class(name="backup", priority=2, prices={"A": "1", "B": "2", "C": "3"})
        service = make_service([hung, backup], provider_timeout_seconds=0.05, max_workers=1)

        responses = [service.get_current_price(PriceRequest(symbol)) for symbol in ("A", "B", "C")]

        assert [(r.success, r.provider) for r in responses] == [(True, "backup")] * 3

    def test_timeouts_open_the_circuit(self, make_service, fake_provider_class):
        breaker = CircuitBreaker(name="hung", failure_threshold=2, recovery_timeout=60)
        hung = fake_provider_class(name="hung", priority=1, delay_seconds=1.0, circuit_breaker=breaker)
        backup = fake_provider_class(name="backup", priority=2, prices={"A": "1", "B": "2", "C": "3"})
        service = make_service([hung, backup], provider_timeout_seconds=0.05)

        first = service.get_current_price(PriceRequest("A"))
        second = service.get_current_price(PriceRequest("B"))
        third = service.get_current_price(PriceRequest("C"))

        assert first.provider_errors == {"hung": PriceErrorCode.NETWORK_ERROR}
        assert second.provider_errors == {"hung": PriceErrorCode.NETWORK_ERROR}
        assert breaker.is_open
        # Skipped as unhealthy, without waiting for the deadline
        assert third.provider_errors == {"hung": PriceErrorCode.API_ERROR}
        assert third.provider == "backup"

    def test_batch_keeps_prices_fetched_before_deadline(self, make_service, fake_provider_class):
        symbols = ["S1", "S2", "S3", "S4", "S5", "S6"]
        prices = {symbol: "10" for symbol in symbols}
        slow = fake_provider_class(name="slow", priority=1, prices=prices, delay_seconds=0.1)
        backup = fake_provider_class(name="backup", priority=2, prices=prices)
        service = make_service([slow, backup], provider_timeout_seconds=0.25)

        batch = service.get_batch_prices([PriceRequest(symbol) for symbol in symbols])

        from_slow = {data.identifier for data in batch.data if data.name.endswith("(slow)")}
        assert 1 <= len(from_slow) < len(symbols)
        assert batch.missing == []
        assert sorted(data.identifier for data in batch.data) == symbols
        assert [r.identifier for r in backup.batch_calls[0]] == [s for s in symbols if s not in from_slow]
        assert len(service.cache) == len(symbols)

    def test_abandoned_batch_stops_fetching(self, make_service, fake_provider_class):
        symbols = ["S1", "S2", "S3", "S4", "S5", "S6"]
        slow = fake_provider_class(prices={symbol: "10" for symbol in symbols}, delay_seconds=0.1)
        service = make_service([slow], provider_timeout_seconds=0.15)

        service.get_batch_prices([PriceRequest(symbol) for symbol in symbols])
        time.sleep(0.5)

        assert slow.call_count < len(symbols)

    def test_cancelled_batch_reports_missing(self, make_service, fake_provider_class):
        service = make_service([fake_provider_class(prices={"AAPL": "180"})])
        cancel = threading.Event()
        cancel.set()

        batch = service.get_batch_prices([PriceRequest("AAPL")], cancel_event=cancel)

        assert batch.data == []
        assert len(batch.missing) == 1


# =============================================================================
# MAINTENANCE
# =============================================================================

class TestMaintenance:
    """Cache stats and clearing."""

    def test_cache_stats(self, make_service, fake_provider_class):
        provider = fake_provider_class(name="only", prices={"AAPL": "180"})
        service = make_service([provider])
        service.get_current_price(PriceRequest("AAPL"))

        stats = service.get_cache_stats()

        assert stats["size"] == 1
        assert stats["providers"] == ["only"]
        assert stats["cache"]["misses"] == 1

    def test_clear_cache(self, make_service, fake_provider_class):
        provider = fake_provider_class(prices={"AAPL": "180"})
        service = make_service([provider])
        service.get_current_price(PriceRequest("AAPL"))

        service.clear_cache()
        service.get_current_price(PriceRequest("AAPL"))

        assert provider.call_count == 2

    def test_context_manager(self, fake_provider_class):
        with PriceService(providers=[fake_provider_class(prices={"AAPL": "180"})]) as service:
            assert service.get_current_price(PriceRequest("AAPL")).success
