# portfolio_tracker/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO presentation
knowledge. The price service translates market data exceptions into
PriceErrorCode values; nothing here is raised out of the aggregator.

Exception Hierarchy:
    ServiceError (base)
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   │   ├── ProviderTimeoutError
    │   │   └── PriceLookupCancelledError
    │   ├── TickerNotFoundError
    │   ├── InvalidSymbolError
    │   └── RateLimitError
    └── FXConversionError

    CircuitBreakerOpen (from circuit_breaker module)
        - Raised when a provider's circuit breaker is blocking calls
"""

from portfolio_tracker.models import PriceErrorCode


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for price provider failures.

    Attributes:
        provider: Name of the provider that failed
        code: PriceErrorCode reported for this failure
    """

    code: PriceErrorCode = PriceErrorCode.API_ERROR

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a price provider is temporarily unavailable.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)
    - Failing health check

    This is a retryable error.
    """

    code = PriceErrorCode.NETWORK_ERROR

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class ProviderTimeoutError(ProviderUnavailableError):
    """Raised when a provider call exceeds its deadline."""

    def __init__(self, provider: str, timeout: float) -> None:
        super().__init__(provider, f"timed out after {timeout:g}s")
        self.timeout = timeout


class PriceLookupCancelledError(ProviderUnavailableError):
    """Raised when the caller cancels a lookup while a provider is working."""

    def __init__(self, provider: str) -> None:
        super().__init__(provider, "lookup cancelled")


class TickerNotFoundError(MarketDataError):
    """
    Raised when the provider has no price for an identifier.

    This is NOT a retryable error.
    """

    code = PriceErrorCode.NOT_FOUND

    def __init__(self, identifier: str, provider: str) -> None:
        message = f"Price for '{identifier}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.identifier = identifier


class InvalidSymbolError(MarketDataError):
    """Raised when an identifier is malformed for the provider."""

    code = PriceErrorCode.INVALID_SYMBOL

    def __init__(self, identifier: str, provider: str, reason: str | None = None) -> None:
        message = f"Invalid identifier '{identifier}' for {provider}"
        if reason:
            message += f": {reason}"
        super().__init__(message, provider=provider)
        self.identifier = identifier


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    The price service moves on to the next provider instead of waiting.

    Attributes:
        retry_after: Seconds to wait before retrying (if known)
    """

    code = PriceErrorCode.RATE_LIMITED

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


# =============================================================================
# FX ERRORS
# =============================================================================


class FXConversionError(ServiceError):
    """
    Raised when an amount can't be converted between two currencies.

    Attributes:
        base_currency: Currency converted from
        quote_currency: Currency converted to
    """

    def __init__(self, base_currency: str, quote_currency: str, reason: str | None = None) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        message = f"FX conversion error for {base_currency}/{quote_currency}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


# =============================================================================
# CIRCUIT BREAKER (re-exported for convenience)
# =============================================================================

from portfolio_tracker.services.circuit_breaker import CircuitBreakerOpen  # noqa: E402


def error_code_for(exc: Exception) -> PriceErrorCode:
    """Map a provider exception to the code the price service reports."""
    if isinstance(exc, MarketDataError):
        return exc.code
    if isinstance(exc, CircuitBreakerOpen):
        return PriceErrorCode.NETWORK_ERROR
    return PriceErrorCode.API_ERROR


__all__ = [
    # Base
    "ServiceError",
    # Market Data
    "MarketDataError",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    "PriceLookupCancelledError",
    "TickerNotFoundError",
    "InvalidSymbolError",
    "RateLimitError",
    # FX
    "FXConversionError",
    # Circuit Breaker
    "CircuitBreakerOpen",
    # Helpers
    "error_code_for",
]
