"""
Circuit Breaker Pattern Implementation.

Stops calling a failing upstream for a cooldown period and serves a
registered fallback instead.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Upstream failing, calls are short-circuited
- HALF_OPEN: One trial call is allowed to test recovery

Transitions:
- CLOSED → OPEN: Error percentage in the rolling window reaches the threshold
- OPEN → HALF_OPEN: After the reset timeout
- HALF_OPEN → CLOSED: If the trial call succeeds
- HALF_OPEN → OPEN: If the trial call fails

All state changes happen in synchronous sections between awaits, so the
breaker is safe to share across concurrently handled requests on one event
loop without a lock.
"""

import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit rejects a call."""
    def __init__(self, name: str, until: datetime):
        self.name = name
        self.until = until
        super().__init__(f"Circuit '{name}' is open until {until.isoformat()}")


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""
    error_threshold_percentage: float = 50.0  # Error % that opens the circuit
    volume_threshold: int = 5                  # Calls in window before evaluating
    rolling_window_seconds: float = 10.0
    reset_timeout_seconds: float = 30.0        # Time in open state before half-open
    exclude_exceptions: tuple = ()             # Exceptions that don't count as failures
    include_exceptions: tuple = (Exception,)   # Only these count as failures


@dataclass
class CircuitMetrics:
    """Lifetime counters for a circuit breaker."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    fallback_calls: int = 0
    state_changes: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None
    last_state_change: Optional[float] = None


class CircuitBreaker:
    """
    Rolling-window circuit breaker.

    Usage:
        cb = CircuitBreaker("wait_times", fallback=static_wait_times)

        # Raises CircuitBreakerOpen when short-circuited
        result = await cb.call(fetch_live, park)

        # Never raises: serves the fallback when open or when the call fails
        result = await cb.call_with_fallback(fetch_live, park)
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig = None,
        fallback: Callable[..., Any] = None,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._fallback = fallback
        self._state = CircuitState.CLOSED
        self._metrics = CircuitMetrics()
        self._window: deque[tuple[float, bool]] = deque()
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

        logger.info(f"Circuit breaker '{name}' initialized")

    @property
    def state(self) -> CircuitState:
        """Current circuit state, advancing OPEN → HALF_OPEN if the cooldown elapsed."""
        self._check_state()
        return self._state

    @property
    def metrics(self) -> CircuitMetrics:
        return self._metrics

    # -- window bookkeeping -------------------------------------------------

    def _prune(self, now: float) -> None:
        cutoff = now - self.config.rolling_window_seconds
        while self._window and self._window[0][0] < cutoff:
            self._window.popleft()

    def window_counts(self) -> tuple[int, int]:
        """(total, failures) recorded in the current rolling window."""
        self._prune(time.time())
        failures = sum(1 for _, ok in self._window if not ok)
        return len(self._window), failures

    def error_percentage(self) -> float:
        total, failures = self.window_counts()
        if total == 0:
            return 0.0
        return failures / total * 100

    # -- state machine ------------------------------------------------------

    def _check_state(self) -> None:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.time() - self._opened_at >= self.config.reset_timeout_seconds:
                self._transition_to(CircuitState.HALF_OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._metrics.state_changes += 1
        self._metrics.last_state_change = time.time()

        if new_state == CircuitState.OPEN:
            self._opened_at = time.time()
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None
            self._window.clear()

        self._trial_in_flight = False
        logger.info(f"Circuit '{self.name}' transitioned: {old_state.value} → {new_state.value}")

    def _record(self, success: bool) -> None:
        now = time.time()
        self._metrics.total_calls += 1
        self._window.append((now, success))
        self._prune(now)

        if success:
            self._metrics.successful_calls += 1
            self._metrics.last_success_time = now
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED)
            return

        self._metrics.failed_calls += 1
        self._metrics.last_failure_time = now

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED:
            total, failures = len(self._window), sum(1 for _, ok in self._window if not ok)
            if (
                total >= self.config.volume_threshold
                and failures / total * 100 >= self.config.error_threshold_percentage
            ):
                self._transition_to(CircuitState.OPEN)

    def _should_count_failure(self, exc: Exception) -> bool:
        if self.config.exclude_exceptions and isinstance(exc, self.config.exclude_exceptions):
            return False
        return isinstance(exc, self.config.include_exceptions)

    def _reject(self) -> CircuitBreakerOpen:
        self._metrics.rejected_calls += 1
        if self._opened_at is not None:
            until = datetime.fromtimestamp(
                self._opened_at + self.config.reset_timeout_seconds, tz=timezone.utc
            )
        else:
            until = datetime.now(timezone.utc)
        return CircuitBreakerOpen(self.name, until)

    # -- calling ------------------------------------------------------------

    async def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Execute ``func`` through the circuit breaker.

        Raises:
            CircuitBreakerOpen: If the circuit is open, or a half-open trial
                is already in flight.
            Exception: Any exception from the function.
        """
        self._check_state()

        if self._state == CircuitState.OPEN:
            raise self._reject()

        is_trial = False
        if self._state == CircuitState.HALF_OPEN:
            if self._trial_in_flight:
                raise self._reject()
            self._trial_in_flight = True
            is_trial = True

        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            if self._should_count_failure(e):
                self._record(False)
            raise
        else:
            self._record(True)
        finally:
            # a cancelled or uncounted trial must not block the next one
            if is_trial:
                self._trial_in_flight = False

        return result

    async def call_with_fallback(
        self,
        func: Callable[..., Any],
        *args,
        fallback: Callable[..., Any] = None,
        **kwargs,
    ) -> Any:
        """
        Execute ``func``; serve the fallback when short-circuited or on failure.

        The fallback receives the same arguments as ``func``.
        """
        fallback = fallback or self._fallback
        if fallback is None:
            raise ValueError(f"Circuit '{self.name}' has no fallback registered")

        try:
            return await self.call(func, *args, **kwargs)
        except CircuitBreakerOpen as e:
            logger.info(f"Circuit '{self.name}' short-circuited to fallback: {e}")
        except Exception as e:
            logger.warning(f"Circuit '{self.name}' call failed, using fallback: {type(e).__name__}: {e}")

        self._metrics.fallback_calls += 1
        result = fallback(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        self._state = CircuitState.CLOSED
        self._window.clear()
        self._opened_at = None
        self._trial_in_flight = False
        logger.info(f"Circuit '{self.name}' manually reset")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        total, failures = self.window_counts()
        return {
            "name": self.name,
            "state": self.state.value,
            "window": {
                "calls": total,
                "failures": failures,
                "error_percentage": round(failures / total * 100, 1) if total else 0.0,
            },
            "metrics": {
                "total_calls": self._metrics.total_calls,
                "successful_calls": self._metrics.successful_calls,
                "failed_calls": self._metrics.failed_calls,
                "rejected_calls": self._metrics.rejected_calls,
                "fallback_calls": self._metrics.fallback_calls,
                "state_changes": self._metrics.state_changes,
            },
            "config": {
                "error_threshold_percentage": self.config.error_threshold_percentage,
                "volume_threshold": self.config.volume_threshold,
                "rolling_window_seconds": self.config.rolling_window_seconds,
                "reset_timeout_seconds": self.config.reset_timeout_seconds,
            },
            "opened_at": datetime.fromtimestamp(
                self._opened_at, tz=timezone.utc
            ).isoformat() if self._opened_at else None,
        }
