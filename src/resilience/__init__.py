"""
Resilience module for upstream fault tolerance.

Provides:
- Circuit breaker pattern
- Retry with constant or exponential backoff
- Rate limiting
- Per-domain freshness accounting (DataState)
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitBreakerOpen, CircuitState
from .freshness import DataState, freshness_score, worst_severity
from .rate_limiter import RateLimiter, RateLimitExceeded
from .retry import RetryConfig, retry_with_backoff

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitBreakerOpen",
    "retry_with_backoff",
    "RetryConfig",
    "RateLimiter",
    "RateLimitExceeded",
    "DataState",
    "freshness_score",
    "worst_severity",
]
