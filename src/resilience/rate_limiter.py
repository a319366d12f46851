"""
Rate Limiter Implementation.

Token buckets keyed by client, used to cap requests per client on the
``/api/`` routes.
"""

import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when rate limit is exceeded."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for '{name}'. Retry after {retry_after:.1f}s")


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    rate: float  # Tokens per second
    burst: int  # Maximum bucket capacity
    name: str = "default"


@dataclass
class RateLimiterState:
    """State for one client's bucket."""

    tokens: float
    last_update: float
    total_allowed: int = 0
    total_denied: int = 0


class RateLimiter:
    """
    Token bucket rate limiter with one bucket per key.

    Allows bursts up to 'burst' size, then limits to 'rate' requests per second.

    Usage:
        limiter = RateLimiter.per_window(requests=200, window_seconds=900, name="api")

        if not limiter.allow(client_ip):
            raise RateLimitExceeded(limiter.config.name, limiter.retry_after(client_ip))
    """

    # Buckets idle for this long are dropped on the next sweep
    IDLE_EVICT_SECONDS = 3600

    def __init__(self, rate: float, burst: int, name: str = "default"):
        self.config = RateLimiterConfig(rate=rate, burst=burst, name=name)
        self._buckets: dict[str, RateLimiterState] = {}
        self._last_sweep = time.time()

    @classmethod
    def per_window(cls, requests: int, window_seconds: float, name: str = "default") -> "RateLimiter":
        """Limiter allowing ``requests`` per ``window_seconds``, bursting to the full allowance."""
        return cls(rate=requests / window_seconds, burst=requests, name=name)

    def _bucket(self, key: str) -> RateLimiterState:
        state = self._buckets.get(key)
        if state is None:
            state = self._buckets[key] = RateLimiterState(
                tokens=float(self.config.burst), last_update=time.time()
            )
        return state

    def _refill(self, state: RateLimiterState) -> None:
        """Refill tokens based on elapsed time."""
        now = time.time()
        elapsed = now - state.last_update
        state.tokens = min(self.config.burst, state.tokens + elapsed * self.config.rate)
        state.last_update = now

    def _sweep(self) -> None:
        now = time.time()
        if now - self._last_sweep < self.IDLE_EVICT_SECONDS:
            return
        self._last_sweep = now
        stale = [k for k, s in self._buckets.items() if now - s.last_update > self.IDLE_EVICT_SECONDS]
        for key in stale:
            del self._buckets[key]

    def allow(self, key: str = "default", tokens: float = 1.0) -> bool:
        """
        Check if a request from ``key`` is allowed and consume tokens.

        Returns:
            True if allowed, False if rate limited
        """
        self._sweep()
        state = self._bucket(key)
        self._refill(state)

        if state.tokens >= tokens:
            state.tokens -= tokens
            state.total_allowed += 1
            return True

        state.total_denied += 1
        return False

    def retry_after(self, key: str = "default") -> float:
        """Seconds until ``key`` has a token again."""
        state = self._bucket(key)
        self._refill(state)
        if state.tokens >= 1:
            return 0.0
        return (1 - state.tokens) / self.config.rate

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "name": self.config.name,
            "rate": self.config.rate,
            "burst": self.config.burst,
            "clients": len(self._buckets),
            "total_allowed": sum(s.total_allowed for s in self._buckets.values()),
            "total_denied": sum(s.total_denied for s in self._buckets.values()),
        }
