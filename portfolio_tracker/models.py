# portfolio_tracker/models.py
import enum


# Enums are shared by the trade payload schemas, the FIFO calculator
# and the price providers
class TradeDirection(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"


class AssetClass(str, enum.Enum):
    STOCK = "STOCK"
    ETF = "ETF"


class IdentifierType(str, enum.Enum):
    """How a price request identifies its asset."""
    SYMBOL = "SYMBOL"
    ISIN = "ISIN"


class PriceErrorCode(str, enum.Enum):
    """
    Failure codes reported by the price service.

    Only NOT_FOUND is ever returned as a final lookup result; the others
    are recorded per provider while falling back through the provider list.
    """
    NOT_FOUND = "NOT_FOUND"  # No provider had data
    RATE_LIMITED = "RATE_LIMITED"  # Provider throttled, try the next one
    INVALID_SYMBOL = "INVALID_SYMBOL"
    NETWORK_ERROR = "NETWORK_ERROR"  # Unavailable, timed out or cancelled
    API_ERROR = "API_ERROR"  # Provider raised something unexpected
