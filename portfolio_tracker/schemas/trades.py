# portfolio_tracker/schemas/trades.py
"""
Pydantic schemas for trade events.

A TRADE_EXECUTED event from the event store carries a JSON payload. These
schemas validate that payload and turn it into the TradeExecution value
the FIFO calculator works with; nothing downstream parses raw JSON.

Field names are snake_case; the camelCase names used by the event store
("assetType", "brokerName", ...) are accepted as aliases.

IMPORTANT: All financial values use Decimal for precision.
Never use float for money!
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from portfolio_tracker.models import AssetClass, TradeDirection
from portfolio_tracker.schemas.validators import validate_currency, validate_isin, validate_symbol
from portfolio_tracker.services.constants import DEFAULT_TRADE_CURRENCY
from portfolio_tracker.services.positions.types import TradeExecution


# =============================================================================
# PAYLOAD
# =============================================================================

class TradeExecutedPayload(BaseModel):
    """
    Payload of a TRADE_EXECUTED event.

    The ISIN is the stable asset identifier; the symbol can change over
    an asset's life. One of the two must be present.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    trade_id: str | None = Field(
        default=None,
        description="Broker's trade ID"
    )
    order_id: str | None = Field(
        default=None,
        description="Original order ID if available"
    )

    isin: str = Field(
        default="",
        description="International Securities Identification Number",
        examples=["US0378331005"]
    )
    symbol: str = Field(
        default="",
        description="Ticker symbol at the time of the trade",
        examples=["AAPL"]
    )
    name: str = Field(
        default="",
        description="Asset display name"
    )
    asset_type: AssetClass = Field(
        default=AssetClass.STOCK,
        description="STOCK or ETF"
    )

    direction: TradeDirection
    quantity: Decimal = Field(
        ...,
        gt=0,
        description="Number of shares/units traded (must be positive)",
        examples=["10", "0.5"]
    )
    price: Decimal = Field(
        ...,
        gt=0,
        description="Price per unit (must be positive)",
        examples=["150.25"]
    )
    total_amount: Decimal | None = Field(
        default=None,
        description="Amount reported by the broker (informational)"
    )

    commission: Decimal = Field(default=Decimal("0"), ge=0)
    fees: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Exchange and regulatory fees"
    )

    currency: str = Field(
        default=DEFAULT_TRADE_CURRENCY,
        description="Currency of the trade (ISO 4217)",
        examples=["EUR", "USD"]
    )
    exchange_rate: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        description="Broker's rate to the account base currency"
    )

    trade_date: date | None = Field(default=None, description="Execution date (YYYY-MM-DD)")
    settlement_date: date | None = Field(default=None)

    broker_name: str = Field(default="")
    account_id: str = Field(default="")
    exchange: str | None = Field(default=None, examples=["NASDAQ", "XETRA"])
    notes: str | None = Field(default=None)

    # =========================================================================
    # FIELD VALIDATORS (Normalization & Validation)
    # =========================================================================

    @field_validator("isin")
    @classmethod
    def normalize_isin(cls, v: str) -> str:
        return validate_isin(v) if v and v.strip() else ""

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return validate_symbol(v) if v and v.strip() else ""

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        # Empty currency in stored events means "not recorded"
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_TRADE_CURRENCY
        return validate_currency(v) if isinstance(v, str) else v

    @field_validator("exchange")
    @classmethod
    def normalize_exchange(cls, v: str | None) -> str | None:
        return v.strip().upper() if v else None

    @model_validator(mode="after")
    def require_identifier(self) -> "TradeExecutedPayload":
        if not self.isin and not self.symbol:
            raise ValueError("Either isin or symbol is required")
        return self


# =============================================================================
# EVENT
# =============================================================================

class TradeEvent(BaseModel):
    """A stored TRADE_EXECUTED event; payload may arrive as a JSON string."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    event_type: Literal["TRADE_EXECUTED"] = "TRADE_EXECUTED"
    timestamp: datetime = Field(..., description="When the trade was executed")
    payload: TradeExecutedPayload

    @field_validator("payload", mode="before")
    @classmethod
    def parse_json_payload(cls, v: Any) -> Any:
        if isinstance(v, (str, bytes)):
            return TradeExecutedPayload.model_validate_json(v)
        return v

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


# =============================================================================
# CONVERSION
# =============================================================================

def trade_from_event(event: TradeEvent) -> TradeExecution:
    """
    Convert a validated event into a TradeExecution.

    The event timestamp is the trade date. total_cost follows the usual
    convention (BUY: value + fees, SELL: value - fees).
    """
    payload = event.payload
    return TradeExecution(
        id=event.id,
        isin=payload.isin,
        symbol=payload.symbol,
        name=payload.name,
        asset_class=payload.asset_type,
        direction=payload.direction,
        quantity=payload.quantity,
        price=payload.price,
        fees=payload.fees,
        commission=payload.commission,
        currency=payload.currency,
        trade_date=event.timestamp,
        broker_name=payload.broker_name,
        account_id=payload.account_id,
    )


def trades_from_events(events: Iterable[TradeEvent | dict[str, Any]]) -> list[TradeExecution]:
    """Validate raw or parsed events and convert them, preserving order."""
    return [
        trade_from_event(event if isinstance(event, TradeEvent) else TradeEvent.model_validate(event))
        for event in events
    ]
