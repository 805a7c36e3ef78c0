# portfolio_tracker/config.py
"""
Configuration using Pydantic Settings.

Loads configuration from environment variables (prefix PORTFOLIO_) and an
optional .env file in the working directory:
- PORTFOLIO_ENVIRONMENT: Runtime mode (development, test, production)
- PORTFOLIO_LOG_LEVEL / PORTFOLIO_LOG_FORMAT: Logging setup
- PORTFOLIO_DEFAULT_CURRENCY: Currency for price requests without one
- PORTFOLIO_PRICE_CACHE_TTL_SECONDS: Quote cache lifetime
- PORTFOLIO_ENABLED_PROVIDERS: JSON list of provider names, in any order
- PORTFOLIO_PROVIDER_PRIORITIES: JSON object, provider name -> priority
- PORTFOLIO_PROVIDER_RATE_LIMITS: JSON object, provider name -> "60/minute"
- PORTFOLIO_FX_RATES: JSON object, "USD/EUR" -> rate

Settings are passed into the service factories in dependencies.py;
nothing reads them at import time.

Usage:
    from portfolio_tracker.config import Settings

    settings = Settings(default_currency="EUR")
"""
from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portfolio_tracker.services.constants import (
    CIRCUIT_BREAKER_FAILURE_THRESHOLD,
    CIRCUIT_BREAKER_FAILURE_WINDOW,
    CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS,
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
    DEFAULT_CURRENCY,
    PRICE_CACHE_MAX_SIZE,
    PRICE_CACHE_TTL_SECONDS,
    PROVIDER_TIMEOUT_SECONDS,
)
from portfolio_tracker.services.prices.types import RateLimitConfig


class Settings(BaseSettings):
    """
    Settings for the price service and the aggregator.

    Provider Settings:
        - enabled_providers: Which providers to build (default: mock only)
        - provider_priorities: Override a provider's default priority
        - provider_rate_limits: Client-side limits, e.g. {"yahoo": "100/minute"}
        - provider_timeout_seconds: Deadline for each provider call (None = no deadline)
    """

    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Runtime environment (development, test, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    default_currency: str = Field(
        default=DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
        pattern=r"^[A-Z]{3}$",
        description="Currency used for price requests that don't specify one"
    )

    # =========================================================================
    # PRICE CACHE
    # =========================================================================
    price_cache_ttl_seconds: int = Field(
        default=PRICE_CACHE_TTL_SECONDS,
        ge=1,
        description="Seconds a fetched quote stays usable"
    )
    price_cache_max_size: int | None = Field(
        default=PRICE_CACHE_MAX_SIZE,
        ge=1,
        description="Maximum cached quotes (None = unbounded)"
    )

    # =========================================================================
    # PROVIDERS
    # =========================================================================
    enabled_providers: list[str] = Field(
        default=["mock"],
        description="Provider names to build (yahoo, mock)"
    )
    provider_priorities: dict[str, int] = Field(
        default_factory=dict,
        description="Priority overrides, lower is tried first"
    )
    provider_rate_limits: dict[str, str] = Field(
        default_factory=dict,
        description="Client-side rate limits per provider (limits notation)"
    )
    provider_timeout_seconds: float | None = Field(
        default=PROVIDER_TIMEOUT_SECONDS,
        gt=0,
        description="Deadline for a single provider call"
    )
    fx_rates: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "USD/EUR": Decimal("0.922"),
            "EUR/USD": Decimal("1.085"),
        },
        description="Fixed FX rates, 'BASE/QUOTE' -> units of quote per base"
    )

    # =========================================================================
    # CIRCUIT BREAKER
    # =========================================================================
    circuit_breaker_failure_threshold: int = Field(
        default=CIRCUIT_BREAKER_FAILURE_THRESHOLD, ge=1
    )
    circuit_breaker_recovery_timeout: float = Field(
        default=CIRCUIT_BREAKER_RECOVERY_TIMEOUT, ge=0
    )
    circuit_breaker_half_open_max_calls: int = Field(
        default=CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS, ge=1
    )
    circuit_breaker_failure_window: float = Field(
        default=CIRCUIT_BREAKER_FAILURE_WINDOW, ge=0
    )

    model_config = SettingsConfigDict(
        env_prefix="PORTFOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("enabled_providers")
    @classmethod
    def normalize_provider_names(cls, v: list[str]) -> list[str]:
        return [name.strip().lower() for name in v if name.strip()]

    @field_validator("provider_rate_limits")
    @classmethod
    def validate_rate_limits(cls, v: dict[str, str]) -> dict[str, str]:
        """Reject limits without a per-minute budget or in unknown notation."""
        for name, limit in v.items():
            try:
                RateLimitConfig.parse(limit)
            except ValueError as e:
                raise ValueError(f"Invalid rate limit for provider '{name}': {limit}") from e
        return {name.lower(): limit for name, limit in v.items()}

    @field_validator("fx_rates")
    @classmethod
    def validate_fx_rates(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        normalized: dict[str, Decimal] = {}
        for pair, rate in v.items():
            base, sep, quote = pair.upper().partition("/")
            if not sep or len(base) != 3 or len(quote) != 3:
                raise ValueError(f"FX pair must look like 'USD/EUR', got '{pair}'")
            if rate <= 0:
                raise ValueError(f"FX rate for {pair} must be positive")
            normalized[f"{base}/{quote}"] = rate
        return normalized

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
