# portfolio_tracker/services/positions/types.py
"""
Data types for FIFO position calculation.

These dataclasses are used by FIFOPositionCalculator and the portfolio
aggregator. They are NOT Pydantic schemas - those live in
portfolio_tracker/schemas/ for serialization.

Design Principles:
- Immutable where possible (frozen=True for results)
- Use Decimal for ALL financial values (never float)
- BuyLot is the only mutable type; it lives inside one calculation

Type Hierarchy:
    TradeExecution  - One executed trade (input)
    BuyLot          - Unconsumed (part of a) buy, FIFO queue element
    RealizedGain    - One sell matched against one lot
    AssetPosition   - Aggregate of one asset's full trade history
    PortfolioTotals - Fold over a list of positions
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from portfolio_tracker.models import AssetClass, TradeDirection
from portfolio_tracker.services.constants import ZERO


# =============================================================================
# INPUT
# =============================================================================

@dataclass(frozen=True)
class TradeExecution:
    """
    A single executed trade, as produced by the trade event adapter.

    Attributes:
        id: Unique trade (event) id
        isin: Stable asset identifier; may be empty when the broker omits it
        symbol: Display ticker, can change over an asset's life
        asset_class: STOCK or ETF
        direction: BUY or SELL
        quantity: Units traded (positive)
        price: Price per unit (positive)
        fees: Exchange/regulatory fees (non-negative)
        commission: Broker commission (non-negative)
        currency: ISO 4217 trade currency
        trade_date: Execution timestamp
        broker_name: Broker that executed the trade
        account_id: Broker account
        name: Asset display name (optional)
        explicit_total_cost: Total cost as reported by the source, if any

    Note:
        total_cost is signed by convention, not by value: for a BUY it is the
        cash outflow including fees, for a SELL the proceeds net of fees.
    """

    id: str
    isin: str
    symbol: str
    asset_class: AssetClass
    direction: TradeDirection
    quantity: Decimal
    price: Decimal
    currency: str
    trade_date: datetime
    fees: Decimal = ZERO
    commission: Decimal = ZERO
    broker_name: str = ""
    account_id: str = ""
    name: str = ""
    explicit_total_cost: Decimal | None = None

    @property
    def asset_key(self) -> str:
        """Grouping key: the ISIN, or the symbol when no ISIN is known."""
        return self.isin or self.symbol

    @property
    def is_buy(self) -> bool:
        return self.direction == TradeDirection.BUY

    @property
    def total_value(self) -> Decimal:
        """Notional value without fees."""
        return self.quantity * self.price

    @property
    def total_fees(self) -> Decimal:
        return self.fees + self.commission

    @property
    def total_cost(self) -> Decimal:
        if self.explicit_total_cost is not None:
            return self.explicit_total_cost
        if self.is_buy:
            return self.total_value + self.total_fees
        return self.total_value - self.total_fees


# =============================================================================
# LOTS & GAINS
# =============================================================================

@dataclass
class BuyLot:
    """
    One buy trade in the FIFO queue.

    cost_per_share is fixed when the lot is created (fees included);
    only remaining_quantity changes, and it never increases.
    """

    trade_id: str
    original_quantity: Decimal
    remaining_quantity: Decimal
    price_per_share: Decimal
    total_cost: Decimal
    cost_per_share: Decimal
    trade_date: datetime
    currency: str

    @classmethod
    def from_trade(cls, trade: TradeExecution) -> BuyLot:
        return cls(
            trade_id=trade.id,
            original_quantity=trade.quantity,
            remaining_quantity=trade.quantity,
            price_per_share=trade.price,
            total_cost=trade.total_cost,
            cost_per_share=trade.total_cost / trade.quantity,
            trade_date=trade.trade_date,
            currency=trade.currency,
        )

    @property
    def is_depleted(self) -> bool:
        return self.remaining_quantity <= ZERO

    @property
    def remaining_cost_basis(self) -> Decimal:
        return self.remaining_quantity * self.cost_per_share

    def consume(self, quantity: Decimal) -> None:
        if quantity < ZERO or quantity > self.remaining_quantity:
            raise ValueError(
                f"Cannot consume {quantity} from lot {self.trade_id} "
                f"with {self.remaining_quantity} remaining"
            )
        self.remaining_quantity -= quantity


@dataclass(frozen=True)
class RealizedGain:
    """
    A sell matched against (part of) one buy lot.

    Formulas:
        gross_proceeds = quantity × sell_price
        cost_basis = quantity × buy_price
        allocated_fees = sell fees × (quantity / sell quantity)
        realized_gain = gross_proceeds - cost_basis - allocated_fees
    """

    sell_trade_id: str
    buy_trade_id: str
    quantity: Decimal
    sell_price: Decimal
    buy_price: Decimal
    gross_proceeds: Decimal
    cost_basis: Decimal
    allocated_fees: Decimal
    realized_gain: Decimal
    sell_date: datetime
    buy_date: datetime
    currency: str


# =============================================================================
# POSITIONS
# =============================================================================

@dataclass(frozen=True)
class AssetPosition:
    """
    Aggregated FIFO position for one asset.

    Attributes:
        total_cost_basis: Cost of the remaining lot portions only
        average_cost_per_share: total_cost_basis / current_quantity (0 if flat)
        total_buy_value / total_sell_value: Raw quantity × price, no fees
        short_quantity: Sell quantity that found no lot to match
        warnings: Data quality notes (e.g. attempted short sells)
    """

    isin: str
    symbol: str
    asset_class: AssetClass
    currency: str

    total_bought: Decimal
    total_sold: Decimal
    current_quantity: Decimal

    total_cost_basis: Decimal
    average_cost_per_share: Decimal

    total_buy_value: Decimal
    total_sell_value: Decimal
    total_fees_and_commissions: Decimal

    total_realized_gain: Decimal
    realized_gains: tuple[RealizedGain, ...]
    remaining_lots: tuple[BuyLot, ...]

    first_trade_date: datetime
    last_trade_date: datetime
    trade_count: int

    name: str = ""
    short_quantity: Decimal = ZERO
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def asset_key(self) -> str:
        return self.isin or self.symbol

    @property
    def has_position(self) -> bool:
        return self.current_quantity > ZERO


@dataclass(frozen=True)
class PortfolioTotals:
    """Simple totals over a list of positions."""

    total_invested: Decimal = ZERO
    total_realized_gains: Decimal = ZERO
    total_fees_and_commissions: Decimal = ZERO
    position_count: int = 0
    total_shares: Decimal = ZERO
