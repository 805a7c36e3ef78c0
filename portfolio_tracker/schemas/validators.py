# portfolio_tracker/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

This module provides:
- Symbol validation and normalization
- ISIN validation (format and check digit)
- Currency code validation
- Date range validation

These validators ensure consistent input handling across all schemas.
"""

import re
from datetime import date

# =============================================================================
# CONSTANTS
# =============================================================================

# Symbol: 1-20 chars, alphanumeric + dots + dashes (BRK.B, RDS-A), optional caret for indices
SYMBOL_PATTERN = re.compile(r'^[\^]?[A-Z0-9][A-Z0-9.\-]{0,19}$')
SYMBOL_MAX_LENGTH = 20

# ISIN: 2-letter country code, 9 alphanumerics, 1 check digit
ISIN_PATTERN = re.compile(r'^[A-Z]{2}[A-Z0-9]{9}[0-9]$')

# Currency: ISO 4217 format (3 uppercase letters)
CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')


# =============================================================================
# SYMBOL VALIDATION
# =============================================================================

def validate_symbol(value: str) -> str:
    """
    Validate and normalize a ticker symbol.

    Valid formats:
    - Standard tickers: AAPL, NVDA, MSFT
    - With dots or dashes: BRK.B, RDS-A
    - Indices with caret: ^SPX

    Returns:
        Normalized symbol (uppercase, trimmed)

    Raises:
        ValueError: If symbol format is invalid
    """
    if not value:
        raise ValueError("Symbol cannot be empty")

    normalized = value.strip().upper()

    if len(normalized) > SYMBOL_MAX_LENGTH:
        raise ValueError(f"Symbol cannot exceed {SYMBOL_MAX_LENGTH} characters")

    if not SYMBOL_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid symbol format: '{normalized}'. "
            "Symbol must be alphanumeric, may include dots (.) or dashes (-)"
        )

    return normalized


# =============================================================================
# ISIN VALIDATION
# =============================================================================

def isin_check_digit_ok(isin: str) -> bool:
    """
    Verify the ISIN check digit (Luhn over the letter-expanded code).

    Letters expand to two digits (A=10 ... Z=35) before the Luhn sum.
    """
    digits = "".join(str(int(ch, 36)) for ch in isin[:-1])
    total = 0
    # Walk from the right; the check digit itself is excluded, so the
    # rightmost remaining digit gets doubled.
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 0:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return (10 - total % 10) % 10 == int(isin[-1])


def validate_isin(value: str) -> str:
    """
    Validate and normalize an ISIN.

    Returns:
        Normalized ISIN (uppercase, trimmed)

    Raises:
        ValueError: If the format or the check digit is wrong
    """
    normalized = value.strip().upper()

    if not ISIN_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid ISIN format: '{normalized}'. "
            "ISIN must be 12 characters: country code, 9 alphanumerics, check digit"
        )

    if not isin_check_digit_ok(normalized):
        raise ValueError(f"Invalid ISIN check digit: '{normalized}'")

    return normalized


# =============================================================================
# DATE VALIDATION
# =============================================================================

def validate_date_range(
    from_date: date | None,
    to_date: date | None,
) -> tuple[date | None, date | None]:
    """
    Validate an optional, inclusive date range.

    Raises:
        ValueError: If both bounds are given and from_date > to_date
    """
    if from_date is not None and to_date is not None and from_date > to_date:
        raise ValueError("date_from must be before or equal to date_to")
    return from_date, to_date


# =============================================================================
# CURRENCY VALIDATION
# =============================================================================

def validate_currency(value: str) -> str:
    """
    Validate and normalize a currency code.

    Args:
        value: Raw currency input (e.g., "usd", "EUR")

    Returns:
        Normalized currency (uppercase, trimmed)

    Raises:
        ValueError: If currency format is invalid
    """
    if not value:
        raise ValueError("Currency cannot be empty")

    normalized = value.strip().upper()

    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid currency format: '{normalized}'. "
            "Currency must be a 3-letter ISO code (e.g., USD, EUR)"
        )

    return normalized
