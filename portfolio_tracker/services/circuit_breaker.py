# portfolio_tracker/services/circuit_breaker.py
"""
Circuit breaker guarding calls to a single price provider.

Each PriceProvider owns one breaker. Its state feeds the provider's
health check, so the price service skips a provider whose circuit is
open and falls back to the next one instead of waiting on it.

States:
    CLOSED    - Normal operation, calls pass through
    OPEN      - Too many failures, calls rejected immediately
    HALF_OPEN - Recovery probe, a limited number of calls allowed

State Transitions:
    CLOSED -> OPEN: failure count reaches threshold (within the window)
    OPEN -> HALF_OPEN: recovery timeout elapsed
    HALF_OPEN -> CLOSED: a probe call succeeds
    HALF_OPEN -> OPEN: a probe call fails

Usage:
    breaker = CircuitBreaker(name="yahoo", failure_threshold=5)

    try:
        with breaker:
            quote = fetch_quote()
    except CircuitBreakerOpen:
        ...  # provider is being skipped
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """
    Raised when a call is rejected because the circuit is open.

    Attributes:
        breaker_name: Name of the circuit breaker
        time_remaining: Seconds until the next recovery probe is allowed
    """

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry in {time_remaining:.1f} seconds."
        )


@dataclass
class CircuitBreakerStats:
    """Counters for monitoring a breaker."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0


@dataclass
class CircuitBreaker:
    """
    Thread-safe circuit breaker.

    Attributes:
        name: Identifier used in logs and errors (the provider name)
        failure_threshold: Failures before the circuit opens
        recovery_timeout: Seconds before a recovery probe is allowed
        half_open_max_calls: Probe calls allowed while half-open
        failure_window: Sliding window in seconds for counting failures (0 = no window)
        excluded_exceptions: Exception types that don't count as failures
        clock: Monotonic time source (injectable for tests)
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    half_open_max_calls: int = 3
    failure_window: float = 0.0
    excluded_exceptions: tuple[type[Exception], ...] = field(default_factory=tuple)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failures: list[float] = field(default_factory=list, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _half_open_calls: int = field(default=0, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)
    _stats: CircuitBreakerStats = field(default_factory=CircuitBreakerStats, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh_state()
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def stats(self) -> CircuitBreakerStats:
        """Snapshot of the counters."""
        with self._lock:
            return CircuitBreakerStats(**vars(self._stats))

    def _refresh_state(self) -> None:
        # Must be called while holding the lock
        if self._state == CircuitState.OPEN and self._seconds_until_probe() <= 0:
            self._transition_to(CircuitState.HALF_OPEN)

    def _seconds_until_probe(self) -> float:
        return max(0.0, self.recovery_timeout - (self.clock() - self._opened_at))

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = self.clock()
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_calls = 0
        else:
            self._failures.clear()

        logger.info(
            f"CircuitBreaker '{self.name}' state change: "
            f"{old_state.value} -> {new_state.value}"
        )

    def _record_success(self) -> None:
        self._stats.successful_calls += 1
        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.CLOSED)

    def _record_failure(self) -> None:
        now = self.clock()
        self._stats.failed_calls += 1

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
            return

        self._failures.append(now)
        if self.failure_window > 0:
            cutoff = now - self.failure_window
            self._failures = [t for t in self._failures if t > cutoff]

        if len(self._failures) >= self.failure_threshold:
            self._transition_to(CircuitState.OPEN)

    def record_failure(self) -> None:
        """
        Count a failure observed outside the context manager.

        Used when a caller gives up on a call that is still running,
        e.g. after a timeout.
        """
        with self._lock:
            self._refresh_state()
            self._record_failure()

    def allows_calls(self) -> bool:
        """True unless the circuit is currently open (does not consume a probe)."""
        return self.state != CircuitState.OPEN

    def __enter__(self) -> "CircuitBreaker":
        with self._lock:
            self._stats.total_calls += 1
            self._refresh_state()

            allowed = self._state == CircuitState.CLOSED
            if self._state == CircuitState.HALF_OPEN and self._half_open_calls < self.half_open_max_calls:
                self._half_open_calls += 1
                allowed = True

            if not allowed:
                self._stats.rejected_calls += 1
                raise CircuitBreakerOpen(self.name, self._seconds_until_probe())

        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> bool:
        with self._lock:
            if exc_val is None or (
                    self.excluded_exceptions and isinstance(exc_val, self.excluded_exceptions)
            ):
                self._record_success()
            else:
                self._record_failure()
        return False

    def reset(self) -> None:
        """Manually close the circuit."""
        with self._lock:
            self._transition_to(CircuitState.CLOSED)
