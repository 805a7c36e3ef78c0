# tests/schemas/test_trade_schemas.py
"""
Tests for trade event schemas.

This module tests:
- Payload validation and normalization
- camelCase aliases from the event store
- JSON string payloads
- Conversion into TradeExecution
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from portfolio_tracker.models import AssetClass, TradeDirection
from portfolio_tracker.schemas import TradeEvent, TradeExecutedPayload, trade_from_event, trades_from_events


def _payload(**overrides):
    data = {
        "isin": "US0378331005",
        "symbol": "AAPL",
        "name": "Apple Inc.",
        "assetType": "STOCK",
        "direction": "BUY",
        "quantity": "10",
        "price": "150.25",
        "commission": "1",
        "fees": "0.5",
        "currency": "USD",
        "brokerName": "Example Broker",
        "accountId": "ACC-1",
    }
    data.update(overrides)
    return data


# =============================================================================
# PAYLOAD
# =============================================================================

class TestTradeExecutedPayload:
    """Validation of the TRADE_EXECUTED payload."""

    def test_valid_payload_with_aliases(self):
        payload = TradeExecutedPayload.model_validate(_payload())

        assert payload.isin == "US0378331005"
        assert payload.asset_type == AssetClass.STOCK
        assert payload.direction == TradeDirection.BUY
        assert payload.quantity == Decimal("10")
        assert payload.broker_name == "Example Broker"
        assert payload.account_id == "ACC-1"

    def test_snake_case_names_accepted(self):
        payload = TradeExecutedPayload(
            symbol="aapl",
            direction="SELL",
            quantity=Decimal("1"),
            price=Decimal("2"),
            broker_name="B",
        )

        assert payload.symbol == "AAPL"
        assert payload.broker_name == "B"

    def test_normalizes_case(self):
        payload = TradeExecutedPayload.model_validate(
            _payload(isin=" us0378331005 ", symbol="aapl", currency="usd", exchange=" nasdaq ")
        )

        assert payload.isin == "US0378331005"
        assert payload.symbol == "AAPL"
        assert payload.currency == "USD"
        assert payload.exchange == "NASDAQ"

    @pytest.mark.parametrize("currency", [None, "", "   "])
    def test_missing_currency_defaults_to_eur(self, currency):
        payload = TradeExecutedPayload.model_validate(_payload(currency=currency))

        assert payload.currency == "EUR"

    def test_unknown_fields_ignored(self):
        payload = TradeExecutedPayload.model_validate(_payload(somethingElse="x"))

        assert not hasattr(payload, "somethingElse")

    def test_isin_or_symbol_required(self):
        with pytest.raises(ValidationError, match="Either isin or symbol is required"):
            TradeExecutedPayload.model_validate(_payload(isin="", symbol=""))

    def test_symbol_only(self):
        payload = TradeExecutedPayload.model_validate(_payload(isin=""))

        assert payload.isin == ""
        assert payload.symbol == "AAPL"

    @pytest.mark.parametrize("field,value", [
        ("quantity", "0"),
        ("quantity", "-5"),
        ("price", "0"),
        ("fees", "-1"),
        ("commission", "-0.01"),
    ])
    def test_rejects_invalid_amounts(self, field, value):
        with pytest.raises(ValidationError):
            TradeExecutedPayload.model_validate(_payload(**{field: value}))

    def test_rejects_bad_isin_check_digit(self):
        with pytest.raises(ValidationError, match="check digit"):
            TradeExecutedPayload.model_validate(_payload(isin="US0378331006"))

    def test_rejects_bad_currency(self):
        with pytest.raises(ValidationError):
            TradeExecutedPayload.model_validate(_payload(currency="DOLLAR"))

    def test_rejects_unknown_direction(self):
        with pytest.raises(ValidationError):
            TradeExecutedPayload.model_validate(_payload(direction="HOLD"))


# =============================================================================
# EVENT & CONVERSION
# =============================================================================

class TestTradeEvent:
    """Events wrap the payload with id and timestamp."""

    def test_json_string_payload(self):
        event = TradeEvent.model_validate({
            "id": "evt-1",
            "eventType": "TRADE_EXECUTED",
            "timestamp": "2024-03-01T10:00:00Z",
            "payload": json.dumps(_payload()),
        })

        assert event.payload.symbol == "AAPL"
        assert event.timestamp == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_assumed_utc(self):
        event = TradeEvent(id="evt-1", timestamp=datetime(2024, 3, 1, 10, 0), payload=_payload())

        assert event.timestamp.tzinfo == timezone.utc

    def test_rejects_other_event_types(self):
        with pytest.raises(ValidationError):
            TradeEvent.model_validate({
                "id": "evt-1",
                "eventType": "CASH_DEPOSIT",
                "timestamp": "2024-03-01T10:00:00Z",
                "payload": _payload(),
            })

    def test_rejects_malformed_json_payload(self):
        with pytest.raises(ValidationError):
            TradeEvent.model_validate({
                "id": "evt-1",
                "timestamp": "2024-03-01T10:00:00Z",
                "payload": "{not json",
            })


class TestTradeConversion:
    """Events to TradeExecution values."""

    def test_trade_from_event(self):
        event = TradeEvent(
            id="evt-1",
            timestamp=datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc),
            payload=_payload(),
        )

        trade = trade_from_event(event)

        assert trade.id == "evt-1"
        assert trade.asset_key == "US0378331005"
        assert trade.trade_date == event.timestamp
        assert trade.total_fees == Decimal("1.5")
        assert trade.total_cost == Decimal("10") * Decimal("150.25") + Decimal("1.5")
        assert trade.broker_name == "Example Broker"

    def test_trades_from_raw_events_preserve_order(self):
        events = [
            {"id": "a", "timestamp": "2024-03-02T00:00:00Z", "payload": _payload()},
            {"id": "b", "timestamp": "2024-03-01T00:00:00Z", "payload": _payload(direction="SELL")},
        ]

        trades = trades_from_events(events)

        assert [t.id for t in trades] == ["a", "b"]
        assert trades[1].direction == TradeDirection.SELL
        assert trades[1].total_cost == Decimal("10") * Decimal("150.25") - Decimal("1.5")
