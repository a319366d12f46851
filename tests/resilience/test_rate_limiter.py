"""Tests for rate limiter implementation."""

from src.resilience.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    RateLimiterState,
    RateLimitExceeded,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fresh_limiter(name: str, rate: float = 10.0, burst: int = 10) -> RateLimiter:
    return RateLimiter(rate=rate, burst=burst, name=name)


# ---------------------------------------------------------------------------
# RateLimitExceeded / dataclasses
# ---------------------------------------------------------------------------


class TestRateLimitExceeded:
    def test_attributes(self):
        exc = RateLimitExceeded("api", 1.5)
        assert exc.name == "api"
        assert exc.retry_after == 1.5
        assert "api" in str(exc)
        assert "1.5" in str(exc)


class TestRateLimiterConfig:
    def test_fields(self):
        cfg = RateLimiterConfig(rate=2.0, burst=5, name="x")
        assert (cfg.rate, cfg.burst, cfg.name) == (2.0, 5, "x")


class TestRateLimiterState:
    def test_defaults(self):
        state = RateLimiterState(tokens=3.0, last_update=0.0)
        assert state.total_allowed == 0
        assert state.total_denied == 0


# ---------------------------------------------------------------------------
# allow / retry_after
# ---------------------------------------------------------------------------


class TestAllow:
    def test_allows_up_to_burst(self):
        limiter = _fresh_limiter("burst", rate=0.001, burst=3)
        assert [limiter.allow("c") for _ in range(4)] == [True, True, True, False]

    def test_buckets_are_per_key(self):
        limiter = _fresh_limiter("keys", rate=0.001, burst=1)
        assert limiter.allow("a") is True
        assert limiter.allow("a") is False
        assert limiter.allow("b") is True

    def test_refills_over_time(self):
        limiter = _fresh_limiter("refill", rate=1.0, burst=1)
        assert limiter.allow("c") is True
        assert limiter.allow("c") is False
        limiter._buckets["c"].last_update -= 2
        assert limiter.allow("c") is True

    def test_retry_after_when_empty(self):
        limiter = _fresh_limiter("retry", rate=0.5, burst=1)
        limiter.allow("c")
        assert 0 < limiter.retry_after("c") <= 2.0

    def test_retry_after_zero_when_available(self):
        assert _fresh_limiter("avail").retry_after("c") == 0.0


class TestPerWindow:
    def test_rate_spreads_requests_over_window(self):
        limiter = RateLimiter.per_window(200, 900, name="api")
        assert limiter.config.burst == 200
        assert limiter.config.rate == 200 / 900
        assert limiter.config.name == "api"


# ---------------------------------------------------------------------------
# Sweep / to_dict
# ---------------------------------------------------------------------------


class TestSweepAndDict:
    def test_idle_buckets_evicted(self):
        limiter = _fresh_limiter("sweep")
        limiter.allow("old")
        limiter._buckets["old"].last_update -= RateLimiter.IDLE_EVICT_SECONDS + 1
        limiter._last_sweep -= RateLimiter.IDLE_EVICT_SECONDS + 1
        limiter.allow("new")
        assert "old" not in limiter._buckets
        assert "new" in limiter._buckets

    def test_to_dict_totals(self):
        limiter = _fresh_limiter("dict", rate=0.001, burst=1)
        limiter.allow("a")
        limiter.allow("a")
        d = limiter.to_dict()
        assert d["name"] == "dict"
        assert d["clients"] == 1
        assert d["total_allowed"] == 1
        assert d["total_denied"] == 1
